"""
Question Paper Generation Pipeline
generation/

Steps:
1. Paper Selector      — per-section random draw from the question pool
2. Math Renderer       — LaTeX spans → PNG (matplotlib mathtext)
3. Paper Exporter      — question paper + solutions PDFs (reportlab)
4. Sheet Exporter      — spreadsheet / CSV exports of a selection or the bank
5. Bulk Generator      — multi-stream / multi-set runs bundled into a zip
"""

"""
Ingestion pipeline

Collectors (PDF, scraper) → IngestionQueue → CleaningPipeline (AI classify) → QuestionBank
TopicGenerationOrchestrator  → QuestionBank
"""

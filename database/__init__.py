"""
Persistence layer: SQLAlchemy question archive and the auto-save controller.
"""

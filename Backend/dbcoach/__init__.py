"""
DBCoach - database design generation pipeline.
"""
__version__ = "1.0.0"

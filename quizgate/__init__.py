"""
QuizGate - quiz attempt lifecycle and integrity monitoring.

Layers:
- engines:        progression evaluation, integrity monitoring, grading
- orchestration:  quiz session state machine and controller
- store:          attempt store interfaces and SQL implementation
- api:            FastAPI routers
"""

__version__ = "1.0.0"

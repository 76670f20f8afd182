"""Recognition-related data models."""

from dataclasses import dataclass, field
from datetime import datetime
from typing import List, Optional


@dataclass(frozen=True)
class RecognitionResult:
    """Detected sound category for one audio chunk.

    ``confidence`` is the winning raw score expressed as a percentage and
    rounded to two decimal places. Scores are not normalized, so the
    percentages of all classes need not add up to 100.
    """
    category_index: int
    category: str
    confidence: float
    scores: List[float] = field(default_factory=list)
    chunk_id: Optional[str] = None
    processing_time: float = 0.0
    timestamp: datetime = field(default_factory=datetime.now)

    @property
    def confidence_text(self) -> str:
        return f"{self.confidence:.2f}%"

    @property
    def display_text(self) -> str:
        return f"Detected sound category: {self.category} ({self.confidence_text})"

# services/quizzer.py
import logging
import time
from typing import Callable, List, Tuple

from ai_providers.base import FileHandle, FileState
from ai_providers.errors import ProcessingFailedError
from ai_providers.pool import ProviderPool, SelectionPolicy
from services.deadline import Deadline
from services.generator import StructuredGenerator
from services.ingestion import FileIngestionCoordinator
from services.schemas import QuizBatch, Topic

logger = logging.getLogger(__name__)


class QuizPipeline:
    """
    upload -> wait until ready -> topics, and later quiz generation for a topic.
    Each call runs under one coarse time budget shared by all of its steps.
    """

    def __init__(self, pool: ProviderPool, coordinator: FileIngestionCoordinator = None,
                 generator: StructuredGenerator = None, budget: float = 600.0,
                 clock: Callable[[], float] = time.monotonic):
        self.pool = pool
        self.coordinator = coordinator or FileIngestionCoordinator()
        self.generator = generator or StructuredGenerator()
        self.budget = budget
        self.clock = clock

    def _deadline(self) -> Deadline:
        return Deadline(self.budget, self.clock)

    def upload_and_analyze(self, data: bytes, mime_type: str,
                           display_name: str) -> Tuple[List[Topic], FileHandle]:
        deadline = self._deadline()
        # upload, polling and topic extraction stay on the account that owns the file
        client = self.pool.acquire(SelectionPolicy.PRIMARY_ONLY)
        handle = self.coordinator.ingest(data, mime_type, display_name, client, deadline=deadline)
        deadline.check("topic extraction")
        topics = self.generator.extract_topics(handle, client)
        return topics, handle

    def generate_quiz(self, topic: str, count: int, file_handle_id: str) -> QuizBatch:
        deadline = self._deadline()
        handle = self.pool.acquire(SelectionPolicy.PRIMARY_ONLY).get_file(file_handle_id)
        if handle.state != FileState.READY:
            raise ProcessingFailedError(f"File {file_handle_id} is {handle.state.value}, not ready",
                                        {"file": file_handle_id, "state": handle.state.value})
        deadline.check("quiz generation")
        client = self.pool.acquire(SelectionPolicy.ROUND_ROBIN)
        quiz = self.generator.generate_quiz(topic, count, handle, client)
        logger.info("Generated %d quiz question(s) on %r using %s", len(quiz.questions), topic, client.name)
        return quiz

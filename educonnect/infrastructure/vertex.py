"""Vertex AI Gemini completion client.

Wraps the synchronous Vertex AI SDK in an async interface by running the
blocking call in a thread pool, so the chat handler does not block the
event loop while waiting on the model.
"""
import asyncio
import concurrent.futures
import threading
from typing import Optional, Protocol

from vertexai import init, generative_models

from educonnect.core.config import Settings, get_vertex_credentials
from educonnect.core.errors import UpstreamFailure
from educonnect.core.logging import get_logger, LogTimer
from educonnect.utils.text import sanitize_text

logger = get_logger(__name__)


class CompletionClient(Protocol):
    """Anything that turns a system instruction plus one message into a reply."""

    async def complete(self, system_instruction: str, message: str) -> str:
        ...


class VertexCompletionClient:
    """Gemini chat completions with fixed generation parameters.

    Args:
        settings: Supplies project, region, model name and generation limits
        max_workers: Size of the thread pool used for blocking SDK calls
    """

    def __init__(self, settings: Settings, max_workers: int = 10):
        self.project_id = settings.project_id
        self.region = settings.region
        self.service_account_file = settings.service_account_file
        self.model_name = settings.llm_model
        self.generation_config = generative_models.GenerationConfig(
            temperature=settings.llm_temperature,
            max_output_tokens=settings.llm_max_output_tokens,
        )
        self._executor: Optional[concurrent.futures.ThreadPoolExecutor] = None
        self._max_workers = max_workers
        self._initialized = False
        self._init_lock = threading.Lock()

    def _get_executor(self) -> concurrent.futures.ThreadPoolExecutor:
        if self._executor is None:
            self._executor = concurrent.futures.ThreadPoolExecutor(
                max_workers=self._max_workers,
                thread_name_prefix="vertex_ai"
            )
        return self._executor

    def _ensure_initialized(self) -> None:
        with self._init_lock:
            if self._initialized:
                return
            creds = get_vertex_credentials(self.service_account_file)
            init(project=self.project_id or None, location=self.region, credentials=creds)
            logger.info(f"Vertex AI initialized for {self.model_name}", extra={"model": self.model_name})
            self._initialized = True

    def _generate(self, system_instruction: str, message: str) -> str:
        self._ensure_initialized()
        model = generative_models.GenerativeModel(
            self.model_name,
            system_instruction=[system_instruction],
        )
        response = model.generate_content(message, generation_config=self.generation_config)
        return response.text

    async def complete(self, system_instruction: str, message: str) -> str:
        """Send one message under a system instruction and return the reply text.

        Raises:
            UpstreamFailure: If the SDK call fails or the reply is empty/blocked
        """
        loop = asyncio.get_running_loop()
        try:
            with LogTimer(logger, "completion_call"):
                text = await loop.run_in_executor(
                    self._get_executor(), self._generate, system_instruction, message
                )
        except Exception as e:
            logger.error(f"Gemini generation failed: {e}", extra={"model": self.model_name})
            raise UpstreamFailure(f"Completion service failed: {type(e).__name__}") from e

        reply = sanitize_text(text)
        if not reply:
            raise UpstreamFailure("Completion service returned an empty reply")
        return reply

    def close(self) -> None:
        if self._executor is not None:
            self._executor.shutdown(wait=False)
            self._executor = None

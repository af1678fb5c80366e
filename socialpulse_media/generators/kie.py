"""
Kie.ai generator for SocialPulse Media.

Kie.ai runs generation tasks out of band. A call uploads any reference images,
submits a task, polls its record endpoint until the task succeeds, fails or the
max wait time elapses, then downloads the first result image.

Several models sit behind one account; each has its own submit/record endpoints
and request body, chosen through MODEL_STRATEGIES.
"""

import logging
import uuid
from dataclasses import dataclass, field
from typing import Callable, Optional

import httpx
from tenacity import (
    Retrying,
    before_sleep_log,
    retry_if_exception_type,
    stop_after_attempt,
    stop_any,
    wait_fixed,
)

from socialpulse_media.clock import Clock, SystemClock
from socialpulse_media.config import BackendSettings
from socialpulse_media.errors import (
    EmptyResultError,
    GenerationTimeoutError,
    NetworkError,
    ProviderError,
)
from socialpulse_media.models import (
    AspectRatio,
    AsyncTask,
    EmbeddedImage,
    GenerationRequest,
    GenerationResult,
    ReferenceImage,
    TaskStatus,
    DEFAULT_MIME_TYPE,
)

from . import ImageGenerator

logger = logging.getLogger(__name__)


KIE_API_URL = "https://api.kie.ai/api/v1"
UPLOAD_ENDPOINT = "/file/upload-base64"
UPLOAD_PREFIX = "social-pulse"
SUCCESS_CODE = 200  # Kie.ai reports its own status code in the body


@dataclass
class TaskSpec:
    """Where and what to submit for one model."""

    submit_path: str
    record_path: str
    body: dict = field(default_factory=dict)


def wire_aspect_ratio(ratio) -> str:
    """Kie.ai accepts the studio ratios as-is; anything else becomes square."""
    ratio = getattr(ratio, "value", ratio)
    valid = {r.value for r in AspectRatio}
    return ratio if ratio in valid else AspectRatio.SQUARE.value


def nano_banana_task(request: GenerationRequest, prompt: str, image_urls: list[str], model: str) -> TaskSpec:
    body = {
        "prompt": prompt,
        "aspectRatio": wire_aspect_ratio(request.aspect_ratio),
        "outputFormat": "png",
    }
    if image_urls:
        body["inputImages"] = image_urls
    return TaskSpec("/nano-banana/generate", "/nano-banana/record-info", body)


def flux_kontext_task(request: GenerationRequest, prompt: str, image_urls: list[str], model: str) -> TaskSpec:
    body = {
        "prompt": prompt,
        "model": model,
        "aspectRatio": wire_aspect_ratio(request.aspect_ratio),
        "outputFormat": "jpeg",
        "promptUpsampling": True,
    }
    if image_urls:
        body["inputImages"] = image_urls
    return TaskSpec("/flux/kontext/generate", "/flux/kontext/record-info", body)


def gpt4o_image_task(request: GenerationRequest, prompt: str, image_urls: list[str], model: str) -> TaskSpec:
    body = {
        "prompt": prompt,
        "size": wire_aspect_ratio(request.aspect_ratio),
        "nVariants": request.image_count,
        "isEnhance": True,
    }
    if image_urls:
        body["filesUrl"] = image_urls
    return TaskSpec("/gpt4o-image/generate", "/gpt4o-image/record-info", body)


TaskStrategy = Callable[[GenerationRequest, str, list, str], TaskSpec]

MODEL_STRATEGIES: dict[str, TaskStrategy] = {
    "google/nano-banana": nano_banana_task,
    "flux-kontext-pro": flux_kontext_task,
    "flux-kontext-max": flux_kontext_task,
    "gpt4o-image": gpt4o_image_task,
}


class KieAiGenerator(ImageGenerator):
    """
    Kie.ai task-based image generator.

    Supports nano-banana (Gemini), Flux Kontext and GPT-4o image models.
    """

    provider_id = "kie-ai"
    display_name = "Kie.ai"
    available_models = tuple(MODEL_STRATEGIES)
    env_prefix = "KIE_AI"
    default_base_url = KIE_API_URL

    def __init__(
        self,
        settings: Optional[BackendSettings] = None,
        client: Optional[httpx.Client] = None,
        clock: Optional[Clock] = None,
    ):
        """
        Initialize the Kie.ai generator.

        Args:
            settings: Backend settings (credential, polling interval, max wait time)
            client: HTTP client to use
            clock: Time source for the polling loop (system clock by default)
        """
        super().__init__(settings, client)
        self.clock = clock or SystemClock()

    def _headers(self) -> dict:
        return {
            "Authorization": f"Bearer {self.settings.api_key}",
            "Content-Type": "application/json",
        }

    def _generate(self, request: GenerationRequest, model: str) -> GenerationResult:
        strategy = MODEL_STRATEGIES[model]
        prompt = self.enhance_prompt(request)

        logger.info(f"[kie-ai] Generating image with model: {model}")
        logger.debug(f"[kie-ai] Enhanced prompt: {prompt}")

        image_urls = self.upload_reference_images(request)
        spec = strategy(request, prompt, image_urls, model)

        task_id = self.submit_task(spec)
        task = self.wait_for_completion(task_id, spec.record_path)
        return self._build_result(task, model)

    def upload_reference_images(self, request: GenerationRequest) -> list[str]:
        """Upload reference images; ones that fail to upload are skipped."""
        urls = []
        for image in request.reference_images:
            url = self.upload_image(image)
            if url:
                urls.append(url)
        return urls

    def upload_image(self, image: ReferenceImage) -> Optional[str]:
        """
        Upload an image to Kie.ai file storage.

        Returns:
            Hosted download URL, or None if the upload failed
        """
        try:
            response = self._client.post(
                f"{self.base_url}{UPLOAD_ENDPOINT}",
                json={
                    "base64Content": image.to_base64(),
                    "uploadPath": f"{UPLOAD_PREFIX}/{uuid.uuid4().hex}",
                },
                headers=self._headers(),
            )
        except httpx.HTTPError as e:
            logger.error(f"[kie-ai] Error uploading image: {e}")
            return None

        data = self._json_or_empty(response)
        download_url = self._payload(data).get("downloadUrl")
        if response.is_success and data.get("code") == SUCCESS_CODE and download_url:
            return download_url

        logger.error(f"[kie-ai] Failed to upload image: {data.get('msg')}")
        return None

    def submit_task(self, spec: TaskSpec) -> str:
        """
        Submit a generation task.

        Returns:
            Backend-assigned task id
        """
        try:
            response = self._client.post(
                f"{self.base_url}{spec.submit_path}",
                json=spec.body,
                headers=self._headers(),
            )
        except httpx.HTTPError as e:
            raise NetworkError(f"Kie.ai task submission failed: {e}")

        data = self._json_or_empty(response)
        if not response.is_success or data.get("code") != SUCCESS_CODE:
            raise ProviderError(data.get("msg") or f"Request failed with status {response.status_code}")

        task_id = self._payload(data).get("taskId")
        if not task_id:
            raise ProviderError("No taskId in Kie.ai response")

        logger.info(f"[kie-ai] Submitted task {task_id}")
        return task_id

    def poll_task(self, task_id: str, record_path: str, deadline: Optional[float] = None) -> AsyncTask:
        """Check a task's status once.

        Transport errors are retried `poll_retries` times, one polling interval
        apart, before the task is given up as failed. A retry is only started
        if it would begin before `deadline` (a clock reading); otherwise the
        task times out.
        """
        deadline_hit = False

        def past_deadline(retry_state) -> bool:
            nonlocal deadline_hit
            if deadline is not None and self.clock.now() + self.settings.polling_interval >= deadline:
                deadline_hit = True
            return deadline_hit

        retrying = Retrying(
            stop=stop_any(stop_after_attempt(self.settings.poll_retries + 1), past_deadline),
            wait=wait_fixed(self.settings.polling_interval),
            retry=retry_if_exception_type(httpx.TransportError),
            sleep=self.clock.sleep,
            before_sleep=before_sleep_log(logger, logging.WARNING),
            reraise=True,
        )
        try:
            response = retrying(
                self._client.get,
                f"{self.base_url}{record_path}",
                params={"taskId": task_id},
                headers={"Authorization": f"Bearer {self.settings.api_key}"},
            )
        except httpx.HTTPError as e:
            if deadline_hit:
                logger.warning(f"[kie-ai] No time left to retry status check for task {task_id}: {e}")
                raise GenerationTimeoutError("Generation timeout")
            raise NetworkError(f"Failed to check task status: {e}")

        data = self._json_or_empty(response)
        if not response.is_success or data.get("code") != SUCCESS_CODE:
            raise ProviderError(data.get("msg") or "Failed to check task status")

        record = data.get("data")
        if not isinstance(record, dict):
            raise ProviderError("Invalid task status response")

        return AsyncTask.from_record(task_id, record)

    def wait_for_completion(self, task_id: str, record_path: str) -> AsyncTask:
        """
        Poll a task until it reaches a terminal state.

        The loop only starts a new check while elapsed time is under the max
        wait time, so it ends within max_wait_time plus one polling interval.
        A timed-out task is abandoned, not cancelled.

        Returns:
            The succeeded task

        Raises:
            ProviderError: The backend reported the task as failed
            GenerationTimeoutError: Max wait time elapsed
        """
        deadline = self.clock.now() + self.settings.max_wait_time

        while self.clock.now() < deadline:
            task = self.poll_task(task_id, record_path, deadline)

            if task.status is TaskStatus.SUCCEEDED:
                return task

            if task.status is TaskStatus.FAILED:
                raise ProviderError(task.error_message or "Image generation failed")

            progress = f" ({task.progress})" if task.progress else ""
            logger.info(f"[kie-ai] Task {task_id} in progress{progress}, waiting...")
            self.clock.sleep(self.settings.polling_interval)

        logger.warning(f"[kie-ai] Task {task_id} timed out after {self.settings.max_wait_time:.0f}s")
        raise GenerationTimeoutError("Generation timeout")

    def fetch_image(self, url: str) -> Optional[EmbeddedImage]:
        """Download a result image, or None if it can't be fetched."""
        try:
            response = self._client.get(url, follow_redirects=True)
        except httpx.HTTPError as e:
            logger.warning(f"[kie-ai] Error fetching image {url}: {e}")
            return None

        if not response.is_success:
            logger.warning(f"[kie-ai] Failed to download image: {response.status_code}")
            return None

        content_type = response.headers.get("content-type", "").split(";")[0].strip()
        return EmbeddedImage(data=response.content, mime_type=content_type or DEFAULT_MIME_TYPE)

    def _build_result(self, task: AsyncTask, model: str) -> GenerationResult:
        urls = task.result_urls
        if not urls:
            raise EmptyResultError("No image URLs in response")

        # If the download fails the URL alone still counts as a result
        image = self.fetch_image(urls[0])
        return GenerationResult.ok(
            image=image,
            image_url=urls[0],
            provider=self.provider_id,
            model=model,
            task_id=task.task_id,
            all_urls=list(urls),
        )

    @staticmethod
    def _payload(data: dict) -> dict:
        """The `data` member of a Kie.ai reply, or {} if it isn't an object."""
        payload = data.get("data")
        return payload if isinstance(payload, dict) else {}

    @staticmethod
    def _json_or_empty(response: httpx.Response) -> dict:
        try:
            data = response.json()
        except ValueError:
            return {}
        return data if isinstance(data, dict) else {}

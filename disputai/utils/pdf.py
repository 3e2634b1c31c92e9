"""Plain-text to PDF conversion through the CloudConvert v2 API."""

import base64
import time
from typing import Callable

import httpx

from disputai.config import settings
from disputai.errors import PdfExportError
from disputai.utils.logging import get_logger

logger = get_logger("pdf", settings.log_level)

EXPORT_TASK = "export-url"


class CloudConvertClient:
    """Runs an import/raw -> convert -> export/url job and downloads the result."""

    def __init__(
        self,
        api_key: str | None = None,
        base_url: str | None = None,
        client: httpx.Client | None = None,
        poll_attempts: int | None = None,
        poll_interval: float | None = None,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self.api_key = api_key or settings.cloudconvert_api_key
        if not self.api_key:
            raise PdfExportError("CLOUDCONVERT_API_KEY is not set")

        self.base_url = (base_url or settings.pdf_config.cloudconvert_base_url).rstrip("/")
        self.client = client or httpx.Client()
        self.poll_attempts = poll_attempts or settings.pdf_config.poll_attempts
        self.poll_interval = (
            poll_interval if poll_interval is not None
            else settings.pdf_config.poll_interval_seconds
        )
        self._sleep = sleep

    @property
    def _headers(self) -> dict[str, str]:
        return {"Authorization": f"Bearer {self.api_key}"}

    def _create_job(self, text: str, case_id: str) -> str:
        """Create the conversion job and return the export task id."""
        body = {
            "tasks": {
                "import-raw": {
                    "operation": "import/raw",
                    "file": base64.b64encode(text.encode("utf-8")).decode("ascii"),
                    "filename": f"case_{case_id}.txt",
                },
                "convert": {
                    "operation": "convert",
                    "input": ["import-raw"],
                    "output_format": "pdf",
                },
                EXPORT_TASK: {
                    "operation": "export/url",
                    "input": ["convert"],
                },
            }
        }
        response = self.client.post(f"{self.base_url}/jobs", json=body, headers=self._headers)
        response.raise_for_status()

        tasks = response.json().get("data", {}).get("tasks", [])
        for task in tasks:
            if task.get("name") == EXPORT_TASK:
                return task["id"]
        raise PdfExportError("CloudConvert job has no export task")

    def _wait_for_file_url(self, task_id: str) -> str:
        for attempt in range(self.poll_attempts):
            response = self.client.get(f"{self.base_url}/tasks/{task_id}", headers=self._headers)
            response.raise_for_status()
            data = response.json()["data"]

            if data["status"] == "finished":
                return data["result"]["files"][0]["url"]
            if data["status"] == "error":
                raise PdfExportError(f"CloudConvert task failed: {data.get('message')}")

            logger.debug(f"Export task {task_id} is {data['status']} (check {attempt + 1})")
            self._sleep(self.poll_interval)

        raise PdfExportError("CloudConvert job did not finish in time")

    def convert_text_to_pdf(self, text: str, case_id: str) -> bytes:
        """Convert a plain-text letter to PDF bytes.

        Raises:
            PdfExportError: On HTTP errors, task errors or polling timeout
        """
        try:
            task_id = self._create_job(text, case_id)
            file_url = self._wait_for_file_url(task_id)
            download = self.client.get(file_url)
            download.raise_for_status()
        except httpx.HTTPError as e:
            raise PdfExportError(f"CloudConvert request failed: {e}") from e

        logger.info(f"PDF generated for case {case_id} ({len(download.content)} bytes)")
        return download.content

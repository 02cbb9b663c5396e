"""Initial data source: a JSON array of task records from a file or URL."""

import asyncio
import json
import logging
from pathlib import Path
from typing import Any, List, Optional, Union

import httpx

from .task import Task

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 10.0


class TaskLoadError(Exception):
    """Raised when the initial task resource cannot be read or parsed."""

    def __init__(self, message: str, source: Optional[str] = None):
        self.source = source
        super().__init__(message)


def _is_url(source: str) -> bool:
    return source.startswith(("http://", "https://"))


def parse_task_records(data: Any, source: Optional[str] = None) -> List[Task]:
    """Convert a decoded JSON document into Task objects.

    Raises:
        TaskLoadError: If the document is not an array of task records
    """
    if not isinstance(data, list):
        raise TaskLoadError(f"Expected a JSON array of tasks, got {type(data).__name__}", source)

    tasks = []
    for index, record in enumerate(data):
        if not isinstance(record, dict):
            raise TaskLoadError(f"Task record {index} is not an object", source)
        try:
            tasks.append(Task.from_dict(record))
        except (AttributeError, KeyError, TypeError, ValueError) as e:
            raise TaskLoadError(f"Invalid task record {index}: {e}", source) from e
    return tasks


async def _fetch_url(url: str, client: Optional[httpx.AsyncClient], timeout: float) -> Any:
    owns_client = client is None
    if owns_client:
        client = httpx.AsyncClient(timeout=timeout)
    try:
        response = await client.get(url)
        if not response.is_success:
            logger.info(f"Initial task resource {url} returned {response.status_code}")
            return []
        return response.json()
    except httpx.TimeoutException as e:
        raise TaskLoadError(f"Request for {url} timed out", url) from e
    except httpx.HTTPError as e:
        raise TaskLoadError(f"Request for {url} failed: {e}", url) from e
    except json.JSONDecodeError as e:
        raise TaskLoadError(f"Invalid JSON from {url}: {e}", url) from e
    finally:
        if owns_client:
            await client.aclose()


async def _read_file(path: Path) -> Any:
    if not path.exists():
        logger.info(f"Initial task file {path} not found")
        return []
    try:
        content = await asyncio.to_thread(path.read_text, encoding="utf-8")
    except OSError as e:
        raise TaskLoadError(f"Could not read {path}: {e}", str(path)) from e
    if not content.strip():
        return []
    try:
        return json.loads(content)
    except json.JSONDecodeError as e:
        raise TaskLoadError(f"Invalid JSON in {path}: {e}", str(path)) from e


async def fetch_initial_tasks(
    source: Union[str, Path, None],
    client: Optional[httpx.AsyncClient] = None,
    timeout: float = DEFAULT_TIMEOUT,
) -> List[Task]:
    """Read the initial task list from a file path or an http(s) URL.

    A missing source, a missing file or a non-2xx response yields an empty
    list so the caller can fall back to generated data.

    Raises:
        TaskLoadError: On network, I/O, JSON or record errors
    """
    if source is None or source == "":
        return []

    source_str = str(source)
    if _is_url(source_str):
        data = await _fetch_url(source_str, client, timeout)
    else:
        data = await _read_file(Path(source_str).expanduser())

    return parse_task_records(data, source_str)

"""
Download the published Parquet sources into the local data directory
"""
import logging
import os
from pathlib import Path
from typing import Dict, List, Optional

import requests
from tqdm import tqdm

from .config import DOWNLOAD_CHUNK_SIZE, HTTP_TIMEOUT, PARQUET_SOURCES, ensure_directories

logger = logging.getLogger("explorer.fetch")

HEADERS = {
    "User-Agent": "interwar-explorer/0.1 (+parquet fetch)",
    "Accept": "application/octet-stream, */*;q=0.8",
}


def fetch_sources(base_url: str, data_dir: Path, force: bool = False,
                  session: Optional[requests.Session] = None,
                  progress: bool = True) -> List[Dict[str, str]]:
    """
    Download every Parquet source from base_url into data_dir

    Existing files are skipped unless force is set. A failed download is
    reported and does not stop the remaining ones. Downloads land in a
    ".part" file that replaces the target only once complete, so a failed
    run never truncates or removes an existing copy.

    Returns:
        One {"file", "status", "detail"} entry per source, status being
        "downloaded", "skipped" or "failed"
    """
    if not base_url:
        raise ValueError("No base URL given for fetching sources")

    data_dir = ensure_directories(Path(data_dir))
    session = session or requests.Session()
    results = []

    for _, filename, _ in tqdm(PARQUET_SOURCES, desc="Fetching sources", disable=not progress):
        target = data_dir / filename
        url = base_url.rstrip("/") + "/" + filename

        if target.exists() and not force:
            logger.info("Skipping %s, file already exists.", filename)
            results.append({"file": filename, "status": "skipped", "detail": str(target)})
            continue

        part = target.with_suffix(target.suffix + ".part")
        try:
            with session.get(url, headers=HEADERS, stream=True, timeout=HTTP_TIMEOUT) as response:
                response.raise_for_status()
                with open(part, "wb") as outfile:
                    for chunk in response.iter_content(chunk_size=DOWNLOAD_CHUNK_SIZE):
                        if chunk:
                            outfile.write(chunk)
            os.replace(part, target)

            results.append({"file": filename, "status": "downloaded", "detail": str(target)})
            logger.info("Downloaded %s -> %s", url, target)

        except requests.exceptions.RequestException as e:
            logger.warning("Error downloading %s: %s", url, e)
            results.append({"file": filename, "status": "failed", "detail": str(e)})
        except OSError as e:
            logger.warning("Error writing file %s: %s", target, e)
            results.append({"file": filename, "status": "failed", "detail": str(e)})
        finally:
            if part.exists():
                os.remove(part)

    return results

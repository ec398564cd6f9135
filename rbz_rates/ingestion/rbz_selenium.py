"""Headless-browser page source for when plain HTTP clients get blocked."""

from __future__ import annotations

import base64
from pathlib import Path
from typing import Optional

from selenium import webdriver
from selenium.common.exceptions import JavascriptException, TimeoutException
from selenium.webdriver.chrome.options import Options
from selenium.webdriver.support.ui import WebDriverWait

from rbz_rates.config import RBZ_ARCHIVE_FORM, RBZ_EXCHANGE_RATES_URL
from rbz_rates.ingestion.errors import ExtractionTimeout, HttpStatus
from rbz_rates.utils.logger import get_logger

LOGGER = get_logger(__name__)

# Runs inside the page so the request carries the browser's cookies and
# fingerprint. Resolves to ``[status, payload]`` where payload is text or
# base64 encoded bytes.
_FETCH_SCRIPT = """
const [url, method, body, asBase64, done] = arguments;
const init = {method: method, credentials: 'include'};
if (body !== null) {
    init.body = body;
    init.headers = {'Content-Type': 'application/x-www-form-urlencoded'};
}
fetch(url, init)
    .then(async (response) => {
        if (!asBase64) {
            done([response.status, await response.text()]);
            return;
        }
        const bytes = new Uint8Array(await response.arrayBuffer());
        let binary = '';
        for (let i = 0; i < bytes.length; i += 0x8000) {
            binary += String.fromCharCode.apply(null, bytes.subarray(i, i + 0x8000));
        }
        done([response.status, btoa(binary)]);
    })
    .catch((error) => done([0, String(error)]));
"""


class RBZSeleniumClient:
    """Selenium-driven page source for the RBZ site."""

    def __init__(
        self,
        *,
        headless: bool = True,
        timeout: int = 30,
        index_url: str = RBZ_EXCHANGE_RATES_URL,
        driver: Optional[webdriver.Chrome] = None,
    ) -> None:
        self.timeout = timeout
        self.index_url = index_url
        self._owns_driver = driver is None
        if driver is None:
            options = Options()
            if headless:
                options.add_argument("--headless=new")
            options.add_argument("--disable-gpu")
            options.add_argument("--no-sandbox")
            options.add_argument("--disable-dev-shm-usage")
            options.add_argument("--ignore-certificate-errors")
            options.add_argument("--disable-blink-features=AutomationControlled")
            options.add_experimental_option("excludeSwitches", ["enable-automation"])
            options.add_experimental_option("useAutomationExtension", False)
            self.driver = webdriver.Chrome(options=options)
        else:
            self.driver = driver
        self.driver.set_script_timeout(timeout)

    def close(self) -> None:
        """Close the browser when this client started it."""

        if getattr(self, "driver", None) is not None and self._owns_driver:
            self.driver.quit()

    def __enter__(self) -> "RBZSeleniumClient":  # pragma: no cover - trivial
        return self

    def __exit__(self, exc_type, exc, tb) -> None:  # pragma: no cover - trivial
        self.close()

    def _open(self, url: str) -> None:
        self.driver.get(url)
        wait = WebDriverWait(self.driver, self.timeout)
        try:
            wait.until(lambda driver: driver.execute_script("return document.readyState") == "complete")
        except TimeoutException as exc:
            raise ExtractionTimeout(f"Timed out waiting for {url} to load") from exc

    def _fetch(self, url: str, *, method: str = "GET", body: str | None = None, as_base64: bool = False) -> str:
        try:
            status, payload = self.driver.execute_async_script(
                _FETCH_SCRIPT, url, method, body, as_base64
            )
        except TimeoutException as exc:
            raise ExtractionTimeout(f"Timed out fetching {url} through the browser") from exc
        except JavascriptException as exc:
            raise RuntimeError(f"Browser fetch of {url} failed: {exc.msg}") from exc
        if status == 0:
            raise RuntimeError(f"Browser fetch of {url} failed: {payload}")
        if not 200 <= int(status) < 300:
            raise HttpStatus(int(status), url)
        return str(payload)

    def fetch_index(self) -> str:
        # Load the page first so cookies set by the bot check are present.
        self._open(self.index_url)
        return self._fetch(self.index_url, method="POST", body=RBZ_ARCHIVE_FORM)

    def fetch_page(self, url: str) -> str:
        self._open(url)
        return self.driver.page_source

    def download(self, url: str, destination: str | Path) -> Path:
        destination_path = Path(destination)
        destination_path.parent.mkdir(parents=True, exist_ok=True)
        LOGGER.info("Downloading %s through the browser to %s", url, destination_path)
        payload = self._fetch(url, as_base64=True)
        try:
            destination_path.write_bytes(base64.b64decode(payload))
        except Exception:
            destination_path.unlink(missing_ok=True)
            raise
        return destination_path


__all__ = ["RBZSeleniumClient"]

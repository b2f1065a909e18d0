"""Selenium browser session used by the expansion controller."""

import time
from typing import Iterable, List, Optional
from selenium import webdriver
from selenium.common.exceptions import WebDriverException
from selenium.webdriver.chrome.options import Options
from selenium.webdriver.common.by import By
from selenium.webdriver.remote.webdriver import WebDriver
from selenium.webdriver.remote.webelement import WebElement
from harvester.models import AffordanceKind
from utils.logger import get_logger, timed_operation
from config.settings import get_config

logger = get_logger(__name__)

_BY_KIND = {
    AffordanceKind.CLASS: By.CLASS_NAME,
    AffordanceKind.ID: By.ID,
}


def create_webdriver(headless: Optional[bool] = None) -> WebDriver:
    """
    Create and configure a Selenium WebDriver instance.

    Args:
        headless: Run without a window (uses config default if None)

    Returns:
        Configured Chrome WebDriver
    """
    config = get_config()

    if headless is None:
        headless = config.get('selenium.headless', True)

    chrome_options = Options()

    if headless:
        chrome_options.add_argument('--headless')

    chrome_options.add_argument('--no-sandbox')
    chrome_options.add_argument('--disable-dev-shm-usage')
    chrome_options.add_argument('--disable-blink-features=AutomationControlled')

    driver = webdriver.Chrome(options=chrome_options)

    logger.info(f"Created Chrome WebDriver (headless={headless})")

    return driver


class BrowserSession:
    """
    Thin wrapper around a WebDriver exposing what the crawl needs.

    The controller, the affordance locator and the cookie handling only talk
    to a session through these methods, so tests can substitute an in-memory
    page with the same interface.
    """

    def __init__(self, driver: WebDriver, implicit_wait: Optional[float] = None,
                 page_load_timeout: Optional[float] = None):
        config = get_config()
        self.driver = driver
        self.set_timeouts(
            implicit_wait if implicit_wait is not None else config.get('selenium.implicit_wait', 5),
            page_load_timeout if page_load_timeout is not None else config.get('selenium.page_load_timeout', 30),
        )

    @classmethod
    def start(cls, headless: Optional[bool] = None) -> "BrowserSession":
        return cls(create_webdriver(headless=headless))

    @property
    def current_url(self) -> str:
        return self.driver.current_url

    def set_timeouts(self, implicit_wait: float, page_load_timeout: float) -> None:
        self.driver.implicitly_wait(implicit_wait)
        self.driver.set_page_load_timeout(page_load_timeout)

    @timed_operation("Page navigation")
    def navigate(self, url: str) -> None:
        logger.info(f"Navigating to {url}")
        self.driver.get(url)
        self.wait_for_ready()

    def wait_for_ready(self, timeout: float = 15) -> bool:
        """
        Wait for document.readyState to become 'complete'.

        Args:
            timeout: Maximum time to wait in seconds

        Returns:
            True if page is ready, False if timeout
        """
        start_time = time.time()

        while time.time() - start_time < timeout:
            if self.driver.execute_script("return document.readyState") == "complete":
                return True
            time.sleep(0.1)

        logger.debug("Page not fully ready, proceeding anyway")
        return False

    def page_source(self) -> str:
        return self.driver.page_source

    def page_length(self) -> int:
        """Scroll height of the document body, the proxy for how much is loaded."""
        return int(self.driver.execute_script("return document.body.scrollHeight") or 0)

    def scroll_to_bottom(self) -> None:
        self.driver.execute_script("window.scrollTo(0, document.body.scrollHeight);")

    def find_elements(self, kind: AffordanceKind, value: str) -> List[WebElement]:
        return self.driver.find_elements(_BY_KIND[kind], value)

    def find_buttons(self) -> List[WebElement]:
        return self.driver.find_elements(By.TAG_NAME, 'button')

    def find_by_css(self, selector: str) -> List[WebElement]:
        return self.driver.find_elements(By.CSS_SELECTOR, selector)

    def attribute(self, element: WebElement, name: str) -> str:
        return element.get_attribute(name) or ""

    def click(self, element: WebElement) -> None:
        """Click an element, falling back to a JavaScript click when intercepted."""
        try:
            element.click()
        except WebDriverException as click_ex:
            logger.debug(f"Direct click failed: {type(click_ex).__name__}, trying JS click")
            self.driver.execute_script("arguments[0].click();", element)

    @timed_operation("Page reload")
    def reload(self) -> None:
        self.driver.refresh()
        self.wait_for_ready()

    def sleep(self, seconds: float) -> None:
        if seconds > 0:
            time.sleep(seconds)

    def quit(self) -> None:
        try:
            self.driver.quit()
            logger.info("Closed WebDriver")
        except WebDriverException as e:
            logger.warning(f"Error closing WebDriver: {e}")


@timed_operation("Cookie acceptance")
def accept_cookies(session, selectors: Iterable[str], wait: Optional[float] = None) -> bool:
    """
    Dismiss a cookie consent dialog by clicking the first visible accept button.

    Args:
        session: BrowserSession
        selectors: CSS selectors of accept buttons, tried in order
        wait: Seconds to wait after the click (uses config default if None)

    Returns:
        True if a consent button was clicked, False otherwise
    """
    if wait is None:
        wait = get_config().get('selenium.cookie_wait', 1)

    logger.debug("Looking for cookie banners...")

    for selector in selectors:
        try:
            buttons = session.find_by_css(selector)
        except WebDriverException as e:
            logger.debug(f"Error with selector '{selector}': {e}")
            continue

        for button in buttons:
            try:
                if not (button.is_displayed() and button.is_enabled()):
                    continue
                session.click(button)
            except WebDriverException as e:
                logger.debug(f"Could not click consent button '{selector}': {e}")
                continue

            logger.info(f"✓ Accepted cookies using selector: {selector}")
            session.sleep(wait)
            return True

    logger.debug("No cookie buttons found or clickable")
    return False

"""Pod API client module.

This module handles:
- JSON request/response exchange with the Pod tracker REST API
- One-time login producing the session token
- Fetching the full pet roster with the session token
"""

import json
import logging
from typing import Any, List, Optional

import requests

from pod_exporter.models import Device, Session, parse_roster

# Configure module logger
logger = logging.getLogger(__name__)


class PodError(Exception):
    """Base exception for Pod API errors."""
    pass


class PodTransportError(PodError):
    """Exception raised when a request fails on the wire or returns non-2xx."""
    pass


class PodMarshalError(PodError):
    """Exception raised when a request body cannot be encoded as JSON."""
    pass


class PodDecodeError(PodError):
    """Exception raised when a response body cannot be decoded."""
    pass


class PodAuthError(PodError):
    """Exception raised when login fails."""
    pass


class PodClient:
    """Client for the Pod tracker REST API.

    Every request sends and accepts JSON. Authenticated requests pass the
    login token verbatim in the authorization header (no "Bearer " prefix).

    Attributes:
        timeout: Per-request timeout in seconds
    """

    BASE_URL = "https://api.podtrackers.net/pod/v3"
    LOGIN_URL = f"{BASE_URL}/authenticate/login"
    FULL_URL = f"{BASE_URL}/users/me/full"

    def __init__(self, timeout: float = 30.0, session: Optional[requests.Session] = None):
        """Initialize the client.

        Args:
            timeout: Per-request timeout in seconds
            session: Optional requests session (for testing)
        """
        self.timeout = timeout
        self.session = session if session is not None else requests.Session()

        self.session.headers.update({
            "Content-Type": "application/json",
            "Accept": "application/json",
        })

    def _request(self, method: str, url: str, **kwargs) -> Any:
        """Send a request and decode the JSON response body.

        Raises:
            PodTransportError: On connection failure, timeout or non-2xx status
            PodDecodeError: If the body is not valid JSON
        """
        try:
            response = self.session.request(method, url, timeout=self.timeout, **kwargs)
            response.raise_for_status()
        except requests.RequestException as e:
            raise PodTransportError(f"{method} {url} failed: {e}") from e

        try:
            return response.json()
        except ValueError as e:
            raise PodDecodeError(f"Invalid JSON from {url}: {e}") from e

    def post_json(self, url: str, body: Any) -> Any:
        """POST a JSON body and return the decoded JSON response.

        Args:
            url: Request URL
            body: JSON-serializable request body

        Returns:
            Decoded response body

        Raises:
            PodMarshalError: If the body cannot be serialized
            PodTransportError: On transport failure
            PodDecodeError: If the response is not JSON
        """
        try:
            payload = json.dumps(body)
        except (TypeError, ValueError) as e:
            raise PodMarshalError(f"Cannot encode request body: {e}") from e

        return self._request("POST", url, data=payload)

    def get_json_authenticated(self, url: str, token: str) -> Any:
        """GET a URL with the session token and return the decoded JSON body.

        Args:
            url: Request URL
            token: Session token, sent as-is in the authorization header

        Returns:
            Decoded response body

        Raises:
            PodTransportError: On transport failure
            PodDecodeError: If the response is not JSON
        """
        return self._request("GET", url, headers={"Authorization": token})

    def login(self, email: str, password: str) -> Session:
        """Authenticate with the Pod API.

        Args:
            email: Account email
            password: Account password

        Returns:
            Session holding the token for later requests

        Raises:
            PodAuthError: If login fails for any reason
        """
        logger.info(f"Authenticating as {email}")

        try:
            data = self.post_json(self.LOGIN_URL, {"email": email, "password": password})
        except PodError as e:
            raise PodAuthError(f"Login failed: {e}") from e

        if not isinstance(data, dict):
            raise PodAuthError(f"Login failed: unexpected response {type(data).__name__}")

        try:
            session = Session.from_dict(data)
        except ValueError as e:
            raise PodAuthError(f"Login failed: cannot decode session: {e}") from e

        if not session.token:
            raise PodAuthError("Login failed: response contained no token")

        logger.info("Authentication successful")
        return session

    def fetch_devices(self, token: str) -> List[Device]:
        """Fetch the full pet roster.

        Args:
            token: Session token from login()

        Returns:
            Devices in API response order

        Raises:
            PodTransportError: On transport failure
            PodDecodeError: If the roster cannot be decoded
        """
        data = self.get_json_authenticated(self.FULL_URL, token)

        try:
            devices = parse_roster(data)
        except (ValueError, TypeError, AttributeError) as e:
            raise PodDecodeError(f"Cannot decode roster: {e}") from e

        logger.debug(f"Fetched {len(devices)} devices")
        return devices

    def close(self) -> None:
        """Close the underlying HTTP session."""
        self.session.close()


def main():
    """Test the client against the live API with provided credentials."""
    import os

    from dotenv import load_dotenv

    logging.basicConfig(
        level=logging.DEBUG,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
    )
    load_dotenv()

    email = os.getenv("POD_EMAIL", "your_email@example.com")
    password = os.getenv("POD_PASSWORD", "YOUR_PASSWORD")

    print(f"Testing Pod client for {email}")
    print("=" * 60)

    client = PodClient()

    try:
        print("\n1. Testing authentication...")
        session = client.login(email, password)
        print(f"   User {session.user_id}, token expires {session.expires}")

        print("\n2. Testing roster fetch...")
        devices = client.fetch_devices(session.token)
        for device in devices:
            print(f"   {device.id} {device.name}: battery={device.battery.remaining} "
                  f"fix={device.location.timestamp}")

        print("\n" + "=" * 60)
        print("All checks passed!")

    except PodAuthError as e:
        print(f"\n   Authentication FAILED: {e}")
        return False
    except PodError as e:
        print(f"\n   Fetch FAILED: {e}")
        return False
    finally:
        client.close()

    return True


if __name__ == "__main__":
    import sys
    success = main()
    sys.exit(0 if success else 1)

"""
Upload an image for analysis from the command line

Checks the image locally (type and size), encodes it as a data URL, submits
it to the relay or straight to the analysis service and prints the answer.

Usage:
    python scripts/analyze_image.py homework.jpg
    cat photo.png | python scripts/analyze_image.py - --language German
    python scripts/analyze_image.py page.webp --url http://localhost:5000/analyze --api-key secret
"""

import argparse
import os
import sys
from pathlib import Path
from typing import Any, Dict, Optional, Tuple

import httpx

# Add parent directory to path for imports
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from services.image_service import encode_image

DEFAULT_URL = "http://localhost:3000/api/analyze"
DEFAULT_MAX_BYTES = 5 * 1024 * 1024

EXIT_OK = 0
EXIT_SERVICE_ERROR = 1
EXIT_LOCAL_ERROR = 2


def submit_image(
    url: str,
    data_url: str,
    api_key: Optional[str] = None,
    language: Optional[str] = None,
    timeout: float = 45.0,
    transport: Optional[httpx.BaseTransport] = None,
) -> Tuple[int, Dict[str, Any]]:
    """POST the data URL and return (status_code, body); transport failures come back as 504/500"""
    payload: Dict[str, Any] = {"image": data_url}
    if language:
        payload["language"] = language

    headers = {"X-API-Key": api_key} if api_key else {}

    try:
        with httpx.Client(timeout=timeout, transport=transport) as client:
            response = client.post(url, json=payload, headers=headers)
    except httpx.TimeoutException:
        return 504, {"success": False, "message": "Request timeout"}
    except httpx.HTTPError as error:
        return 500, {"success": False, "message": f"Could not reach {url}", "details": str(error)}

    try:
        body = response.json()
    except ValueError:
        body = {"success": False, "message": f"Request failed ({response.status_code})"}
    return response.status_code, body


def read_image(source: str) -> Tuple[bytes, Optional[str]]:
    if source == "-":
        return sys.stdin.buffer.read(), None
    return Path(source).read_bytes(), source


def main(argv=None) -> int:
    parser = argparse.ArgumentParser(description="Get an AI explanation of a homework photo, foreign text or question")
    parser.add_argument("image", help="Image file to analyze, or - to read from stdin")
    parser.add_argument("--url", default=os.getenv("ANALYZE_URL", DEFAULT_URL), help="Relay or analysis endpoint")
    parser.add_argument("--api-key", default=os.getenv("ANALYZE_API_KEY"), help="Value for the X-API-Key header")
    parser.add_argument("--language", help="Language for the answer")
    parser.add_argument("--max-bytes", type=int, default=DEFAULT_MAX_BYTES, help="Local size limit, 0 to disable")
    parser.add_argument("--timeout", type=float, default=45.0, help="Seconds to wait for the answer")
    args = parser.parse_args(argv)

    try:
        data, filename = read_image(args.image)
        data_url = encode_image(data, args.max_bytes, filename=filename)
    except (OSError, ValueError) as error:
        print(f"❌ {error}", file=sys.stderr)
        return EXIT_LOCAL_ERROR

    print(f"📤 Sending {len(data)} bytes to {args.url}...", file=sys.stderr)
    status_code, body = submit_image(args.url, data_url, args.api_key, args.language, args.timeout)

    if status_code == 200 and body.get("success"):
        print(body.get("result", ""))
        return EXIT_OK

    message = body.get("message") or body.get("details") or "Failed to analyze image"
    print(f"❌ {message} (HTTP {status_code})", file=sys.stderr)
    if body.get("details") and body.get("details") != message:
        print(f"   {body['details']}", file=sys.stderr)
    return EXIT_SERVICE_ERROR


if __name__ == "__main__":
    sys.exit(main())

import base64
import json

import httpx
import pytest

import functions
import server
from conftest import STABILITY_URL


@pytest.fixture(autouse=True)
def overrides(settings, providers):
    server.app.dependency_overrides[server.get_settings] = lambda: settings
    server.app.dependency_overrides[server.get_http_transport] = lambda: providers.transport
    yield
    server.app.dependency_overrides.clear()


def multipart_event(prompt: str, image: bytes) -> dict:
    request = httpx.Request(
        "POST",
        "http://function.local/",
        data={"prompt": prompt},
        files={"image": ("photo.png", image, "image/png")}
    )
    body = request.read()
    return {
        "httpMethod": "POST",
        "headers": {"content-type": request.headers["content-type"]},
        "body": base64.b64encode(body).decode(),
        "isBase64Encoded": True,
    }


@pytest.mark.parametrize("handler", [functions.text_to_image_handler, functions.image_to_image_handler])
def test_non_post_is_405(handler) -> None:
    response = handler({"httpMethod": "GET", "headers": {}, "body": None})

    assert response["statusCode"] == 405
    assert json.loads(response["body"]) == {"error": "Method not allowed"}


def test_text_handler_returns_result(providers) -> None:
    providers.queue_statuses(("COMPLETED", ["https://cdn/fn.png"]))

    response = functions.text_to_image_handler({
        "httpMethod": "POST",
        "headers": {},
        "body": json.dumps({"prompt": "from a function"}),
    })

    assert response["statusCode"] == 200
    assert response["headers"]["Access-Control-Allow-Origin"] == "*"
    assert response["headers"]["x-generation-degraded"] == "false"
    assert json.loads(response["body"])["images"] == ["https://cdn/fn.png"]


def test_text_handler_falls_back_on_provider_failure(providers) -> None:
    providers.queue_statuses(("FAILED", []))

    response = functions.text_to_image_handler({
        "httpMethod": "POST",
        "headers": {"Content-Type": "application/json"},
        "body": json.dumps({"prompt": "doomed"}),
    })

    assert response["statusCode"] == 200
    assert json.loads(response["body"])["content"] == 'Placeholder for: "doomed"'


def test_text_handler_blank_prompt_is_400() -> None:
    response = functions.text_to_image_handler({
        "httpMethod": "POST",
        "headers": {},
        "body": json.dumps({"prompt": ""}),
    })

    assert response["statusCode"] == 400


def test_image_handler_normalizes_like_the_server(providers, make_image) -> None:
    response = functions.image_to_image_handler(multipart_event("pixel art", make_image(size=(333, 777))))

    assert response["statusCode"] == 200
    assert json.loads(response["body"])["images"] == ["data:image/png;base64,QUJD"]

    submitted = providers.calls_to("POST", f"{STABILITY_URL}/image-to-image")[0]
    assert b'filename="image.jpg"' in submitted.content
    assert b"\xff\xd8" in submitted.content


def test_image_handler_provider_failure_is_500(providers, make_image) -> None:
    providers.transform_reply = (403, {"message": "forbidden"})

    response = functions.image_to_image_handler(multipart_event("x", make_image()))

    assert response["statusCode"] == 500
    assert json.loads(response["body"]) == {
        "error": "Failed to transform image",
        "details": "Stability AI error: 403",
    }

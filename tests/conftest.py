"""Pytest fixtures shared across all test modules."""

import json
import re
from urllib.parse import unquote

import httpx
import pytest

from jute.remote import JupyterClient


SAMPLE_NOTEBOOK = """
{
    "metadata": {
        "kernelspec": {
            "name": "python3",
            "display_name": "Python 3"
        },
        "language_info": {
            "name": "python",
            "codemirror_mode": {
                "name": "ipython",
                "version": 3
            },
            "file_extension": ".py",
            "mimetype": "text/x-python",
            "pygments_lexer": "ipython3",
            "version": "3.8.5",
            "nbconvert_exporter": "python"
        },
        "orig_nbformat": 4,
        "title": "Example Notebook",
        "authors": [
            {
                "name": "Alice"
            },
            {
                "name": "Bob"
            }
        ],
        "custom": "metadata"
    },
    "nbformat_minor": 4,
    "nbformat": 4,
    "cells": [
        {
            "cell_type": "code",
            "id": "cell-1",
            "metadata": {
                "custom": "metadata"
            },
            "source": "print('Hello, world!')",
            "execution_count": 1,
            "outputs": [
                {
                    "output_type": "execute_result",
                    "execution_count": 1,
                    "data": {
                        "text/plain": "Hello, world!"
                    },
                    "metadata": {
                        "custom": "metadata"
                    }
                }
            ]
        }
    ]
}
"""


def kernel_record(kernel_id: str, name: str = "python3") -> dict:
    return {
        "id": kernel_id,
        "name": name,
        "last_activity": "2024-05-01T12:00:00.000000Z",
        "execution_state": "idle",
        "connections": 0,
    }


class FakeJupyterServer:
    """In-memory stand-in for the Jupyter server kernels REST API."""

    def __init__(self, token: str = "secret"):
        self.token = token
        self.kernels: dict[str, dict] = {}
        self.requests: list[httpx.Request] = []
        self.next_ids = ["abc"]

    def add_kernel(self, kernel_id: str, name: str = "python3") -> dict:
        self.kernels[kernel_id] = kernel_record(kernel_id, name)
        return self.kernels[kernel_id]

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if request.headers.get("Authorization") != f"token {self.token}":
            return httpx.Response(403, json={"message": "Forbidden"})

        path = request.url.path
        if path == "/api" and request.method == "GET":
            return httpx.Response(200, json={"version": "2.14.0"})

        if path == "/api/kernels":
            if request.method == "GET":
                return httpx.Response(200, json=list(self.kernels.values()))
            if request.method == "POST":
                body = json.loads(request.content)
                kernel_id = self.next_ids.pop(0)
                self.kernels[kernel_id] = kernel_record(kernel_id, body["name"])
                return httpx.Response(201, json=self.kernels[kernel_id])

        raw_path = request.url.raw_path.decode("ascii").partition("?")[0]
        match = re.fullmatch(r"/api/kernels/([^/]+)", raw_path)
        if match:
            kernel_id = unquote(match.group(1))
            if kernel_id not in self.kernels:
                return httpx.Response(404, json={"message": f"Kernel does not exist: {kernel_id}"})
            if request.method == "GET":
                return httpx.Response(200, json=self.kernels[kernel_id])
            if request.method == "DELETE":
                del self.kernels[kernel_id]
                return httpx.Response(204)

        return httpx.Response(404, json={"message": "Not Found"})

    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self.handler)

    def client(self, url: str = "https://jupyter.example.com") -> JupyterClient:
        return JupyterClient(url, self.token, transport=self.transport())


@pytest.fixture
def sample_json() -> str:
    return SAMPLE_NOTEBOOK


@pytest.fixture
def server() -> FakeJupyterServer:
    return FakeJupyterServer()

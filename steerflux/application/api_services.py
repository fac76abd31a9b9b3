"""Application services wrapping the storefront and admin API endpoints."""

from __future__ import annotations

import mimetypes
from pathlib import Path
from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence, Tuple

import requests

from steerflux.domain.errors import HttpError, SessionError
from steerflux.infrastructure import log_utils
from steerflux.infrastructure.session_client import SessionClient

Envelope = Dict[str, Any]
FilePart = Tuple[str, Tuple[str, bytes, str]]


class EnvelopeServiceMixin:
    """Shared helpers for services that speak the ``{success, data}`` envelope."""

    _client: SessionClient

    @staticmethod
    def _unwrap(response: requests.Response, context: str) -> Envelope:
        if not 200 <= response.status_code < 300:
            raise HttpError(f"{context} failed with {response.status_code}", response)
        if response.status_code == 204 or not response.content:
            return {"success": True, "data": None}
        try:
            payload = response.json()
        except ValueError:
            return {"success": True, "data": response.text}
        if isinstance(payload, dict):
            return payload
        return {"success": True, "data": payload}

    @staticmethod
    def _read_files(field: str, paths: Iterable[Path | str]) -> List[FilePart]:
        """Load uploads into memory so the request can be replayed after a refresh."""
        parts: List[FilePart] = []
        for raw in paths:
            path = Path(raw)
            mime = mimetypes.guess_type(path.name)[0] or "application/octet-stream"
            parts.append((field, (path.name, path.read_bytes(), mime)))
        return parts


class ProductService(EnvelopeServiceMixin):
    """Catalog reads (public) and product management (admin)."""

    def __init__(self, client: SessionClient):
        self._client = client

    def get_all(self, params: Optional[Mapping[str, Any]] = None) -> Envelope:
        return self._unwrap(self._client.get("/products", params=params or {}), "List products")

    def get_by_id(self, product_id: str) -> Envelope:
        return self._unwrap(self._client.get(f"/products/{product_id}"), "Get product")

    def get_by_category(self, category_id: str, params: Optional[Mapping[str, Any]] = None) -> Envelope:
        response = self._client.get(f"/products/category/{category_id}", params=params or {})
        return self._unwrap(response, "List products by category")

    def get_stats(self) -> Envelope:
        return self._unwrap(self._client.get("/products/stats"), "Product stats")

    def create(self, fields: Mapping[str, Any], images: Sequence[Path | str] = ()) -> Envelope:
        response = self._client.post(
            "/products", data=dict(fields), files=self._read_files("images", images) or None
        )
        return self._unwrap(response, "Create product")

    def update(self, product_id: str, fields: Mapping[str, Any], images: Sequence[Path | str] = ()) -> Envelope:
        response = self._client.put(
            f"/products/{product_id}", data=dict(fields), files=self._read_files("images", images) or None
        )
        return self._unwrap(response, "Update product")

    def update_stock(self, product_id: str, quantity: int) -> Envelope:
        response = self._client.patch(f"/products/{product_id}/stock", {"quantity": quantity})
        return self._unwrap(response, "Update stock")

    def delete_image(self, product_id: str, image_url: str) -> Envelope:
        response = self._client.delete(f"/products/{product_id}/image", {"imageUrl": image_url})
        return self._unwrap(response, "Delete product image")

    def delete(self, product_id: str) -> Envelope:
        return self._unwrap(self._client.delete(f"/products/{product_id}"), "Delete product")


class CategoryService(EnvelopeServiceMixin):
    def __init__(self, client: SessionClient):
        self._client = client

    def get_all(self, params: Optional[Mapping[str, Any]] = None) -> Envelope:
        return self._unwrap(self._client.get("/categories", params=params or {}), "List categories")

    def get_by_id(self, category_id: str) -> Envelope:
        return self._unwrap(self._client.get(f"/categories/{category_id}"), "Get category")

    def create(self, fields: Mapping[str, Any], image: Path | str | None = None) -> Envelope:
        files = self._read_files("image", [image]) if image else None
        return self._unwrap(self._client.post("/categories", data=dict(fields), files=files), "Create category")

    def update(self, category_id: str, fields: Mapping[str, Any], image: Path | str | None = None) -> Envelope:
        files = self._read_files("image", [image]) if image else None
        response = self._client.put(f"/categories/{category_id}", data=dict(fields), files=files)
        return self._unwrap(response, "Update category")

    def delete(self, category_id: str) -> Envelope:
        return self._unwrap(self._client.delete(f"/categories/{category_id}"), "Delete category")


class MessageService(EnvelopeServiceMixin):
    """Contact form submissions and the admin inbox."""

    def __init__(self, client: SessionClient):
        self._client = client

    def send_message(self, payload: Mapping[str, Any]) -> Envelope:
        return self._unwrap(self._client.post("/messages", dict(payload)), "Send message")

    def get_all(self, params: Optional[Mapping[str, Any]] = None) -> Envelope:
        return self._unwrap(self._client.get("/messages", params=params or {}), "List messages")

    def get_by_id(self, message_id: str) -> Envelope:
        return self._unwrap(self._client.get(f"/messages/{message_id}"), "Get message")

    def reply(self, message_id: str, reply: Mapping[str, Any]) -> Envelope:
        return self._unwrap(self._client.post(f"/messages/{message_id}/reply", dict(reply)), "Reply to message")

    def update_status(self, message_id: str, status: str) -> Envelope:
        response = self._client.patch(f"/messages/{message_id}/status", {"status": status})
        return self._unwrap(response, "Update message status")

    def toggle_archive(self, message_id: str) -> Envelope:
        return self._unwrap(self._client.patch(f"/messages/{message_id}/archive"), "Toggle archive")

    def delete(self, message_id: str) -> Envelope:
        return self._unwrap(self._client.delete(f"/messages/{message_id}"), "Delete message")

    def bulk_update(self, ids: Sequence[str], action: str) -> Envelope:
        response = self._client.patch("/messages/bulk", {"ids": list(ids), "action": action})
        return self._unwrap(response, "Bulk update messages")

    def get_stats(self) -> Envelope:
        return self._unwrap(self._client.get("/messages/stats"), "Message stats")


class ReviewService(EnvelopeServiceMixin):
    """Public review submission and admin moderation."""

    def __init__(self, client: SessionClient):
        self._client = client

    def _call(self, context: str, method: str, path: str, body: Any = None, **kwargs: Any) -> Envelope:
        try:
            return self._unwrap(self._client.request(method, path, body, **kwargs), context)
        except HttpError as exc:
            log_utils.error(f"{context} error: {exc.message or exc}")
            raise

    def create_review(self, payload: Mapping[str, Any]) -> Envelope:
        return self._call("Create review", "POST", "/reviews", dict(payload))

    def get_product_reviews(self, product_id: str, params: Optional[Mapping[str, Any]] = None) -> Envelope:
        return self._call("Get reviews", "GET", f"/reviews/product/{product_id}", params=params or {})

    def check_review_eligibility(self, product_id: Any, email: Optional[str]) -> Envelope:
        """Ask whether ``email`` may review ``product_id``.

        Failures never raise: the storefront falls back to letting the
        visitor submit, and the server has the final say on creation.
        """
        if not product_id or not email:
            return {"success": False, "error": "Product ID and email are required"}

        try:
            return self._unwrap(
                self._client.post(
                    "/reviews/check",
                    {"productId": str(product_id), "email": email.strip().lower()},
                ),
                "Check eligibility",
            )
        except SessionError as exc:
            message = exc.message if isinstance(exc, HttpError) else None
            log_utils.warn(f"Check eligibility error: {message or exc}")
            return {
                "success": False,
                "error": message or "Failed to check eligibility",
                "data": {"canReview": True, "hasPendingReview": False},
            }

    def get_all_reviews(self, params: Optional[Mapping[str, Any]] = None) -> Envelope:
        return self._call("Get all reviews", "GET", "/reviews/admin/all", params=params or {})

    def update_review_status(self, review_id: str, status: str) -> Envelope:
        return self._call("Update status", "PUT", f"/reviews/{review_id}/status", {"status": status})

    def delete_review(self, review_id: str) -> Envelope:
        return self._call("Delete review", "DELETE", f"/reviews/{review_id}")

    def get_review_stats(self) -> Envelope:
        return self._call("Get stats", "GET", "/reviews/admin/stats")


class DashboardService(EnvelopeServiceMixin):
    def __init__(self, client: SessionClient):
        self._client = client

    def get_stats(self) -> Envelope:
        try:
            envelope = self._unwrap(self._client.get("/dashboard/stats"), "Dashboard stats")
        except HttpError as exc:
            log_utils.error(f"Error fetching dashboard stats: {exc}")
            raise
        data = envelope.get("data")
        if isinstance(data, dict):
            log_utils.debug(f"Dashboard stats keys: {sorted(data)}")
        return envelope

    def get_recent_messages(self, limit: int = 5) -> Envelope:
        try:
            return self._unwrap(
                self._client.get("/dashboard/recent-messages", params={"limit": limit}),
                "Recent messages",
            )
        except HttpError as exc:
            log_utils.error(f"Error fetching recent messages: {exc}")
            raise


__all__ = [
    "ProductService",
    "CategoryService",
    "MessageService",
    "ReviewService",
    "DashboardService",
]

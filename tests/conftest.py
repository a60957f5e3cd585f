from __future__ import annotations

import copy
import itertools

import pytest
from fastapi.testclient import TestClient

from auth import security
from works import repository as works_repository

TEST_USER_ID = 1
TEST_USER_EMAIL = "admin@example.com"


@pytest.fixture
def anyio_backend():
    return "asyncio"


@pytest.fixture(autouse=True)
def _env(monkeypatch, tmp_path):
    monkeypatch.setenv("JWT_SECRET", "test-secret")
    monkeypatch.setenv("JWT_ALG", "HS256")
    monkeypatch.setenv("IMAGES_DIR", str(tmp_path / "images"))
    monkeypatch.delenv("ACCESS_TOKEN_EXPIRE_MIN", raising=False)
    monkeypatch.delenv("MAX_UPLOAD_BYTES", raising=False)
    monkeypatch.delenv("DATABASE_URL", raising=False)


@pytest.fixture
def images_dir(tmp_path):
    path = tmp_path / "images"
    path.mkdir(parents=True, exist_ok=True)
    return path


@pytest.fixture
def app(images_dir):
    import main

    return main.create_app()


@pytest.fixture
def client(app):
    # Not used as a context manager: lifespan (and the DB pool) never starts.
    return TestClient(app)


@pytest.fixture
def auth_headers():
    token = security.build_access_token(user_id=TEST_USER_ID, email=TEST_USER_EMAIL)
    return {"Authorization": f"Bearer {token}"}


class FakeWorkStore:
    """
    In-memory stand-in for works.repository with the same all-or-nothing
    behavior as the SQL transactions.
    """

    def __init__(self) -> None:
        self.works: dict[int, dict] = {}
        self.categories: list[dict] = []
        self.images: dict[str, list[dict]] = {"large": [], "small": []}
        self.fail_create: str | None = None
        self._ids = itertools.count(1)

    def install(self, monkeypatch) -> None:
        for name in (
            "list_works",
            "get_work",
            "list_categories",
            "list_images",
            "create_work",
            "update_work",
            "delete_work",
            "reorder_works",
        ):
            monkeypatch.setattr(works_repository, name, getattr(self, name))

    def _snapshot(self):
        return copy.deepcopy((self.works, self.categories, self.images))

    def _restore(self, snapshot) -> None:
        self.works, self.categories, self.images = snapshot

    def category_rows(self, work_id: int) -> list[dict]:
        return [c for c in self.categories if c["work_id"] == work_id]

    def image_rows(self, kind: str, work_id: int) -> list[dict]:
        return [r for r in self.images[kind] if r["work_id"] == work_id]

    def add_work(self, *, client="Acme", order=0, image=None, intro_image=None, categories=(), large=(), small=()) -> int:
        work_id = next(self._ids)
        self.works[work_id] = {
            "id": work_id,
            "image": image,
            "intro_image": intro_image,
            "client": client,
            "tags": "",
            "description": "",
            "sort_order": order,
        }
        for name in categories:
            self.categories.append({"id": next(self._ids), "work_id": work_id, "category_name": name})
        for kind, srcs in (("large", large), ("small", small)):
            for i, src in enumerate(srcs):
                self.images[kind].append({"id": next(self._ids), "work_id": work_id, "src": src, "sort_order": i})
        return work_id

    async def list_works(self, *, ordered=True):
        if ordered:
            rows = sorted(self.works.values(), key=lambda r: (r["sort_order"], r["id"]))
        else:
            rows = sorted(self.works.values(), key=lambda r: r["id"])
        return [dict(r) for r in rows]

    async def get_work(self, work_id):
        row = self.works.get(work_id)
        return dict(row) if row is not None else None

    async def list_categories(self, work_ids):
        return [dict(c) for c in self.categories if c["work_id"] in work_ids]

    async def list_images(self, kind, work_ids):
        rows = [r for r in self.images[kind] if r["work_id"] in work_ids]
        rows.sort(key=lambda r: (r["sort_order"] is None, r["sort_order"] or 0, r["id"]))
        return [dict(r) for r in rows]

    async def create_work(self, *, image, intro_image, client, tags, description, order, categories, large_images, small_images):
        if self.fail_create:
            raise RuntimeError(self.fail_create)
        if order is None:
            order = max((w["sort_order"] for w in self.works.values()), default=-1) + 1
        work_id = self.add_work(
            client=client,
            order=order,
            image=image,
            intro_image=intro_image,
            categories=categories,
            large=large_images,
            small=small_images,
        )
        self.works[work_id].update(tags=tags, description=description)
        return work_id

    async def update_work(self, work_id, *, client, tags, description, image, intro_image, categories, galleries, gallery_limits):
        snapshot = self._snapshot()
        try:
            return self._update(
                work_id,
                client=client,
                tags=tags,
                description=description,
                image=image,
                intro_image=intro_image,
                categories=categories,
                galleries=galleries,
                gallery_limits=gallery_limits,
            )
        except Exception:
            self._restore(snapshot)
            raise

    def _update(self, work_id, *, client, tags, description, image, intro_image, categories, galleries, gallery_limits):
        current = self.works.get(work_id)
        if current is None:
            return None

        unreferenced = []
        if image and current["image"] and current["image"] != image:
            unreferenced.append(current["image"])
        if intro_image and current["intro_image"] and current["intro_image"] != intro_image:
            unreferenced.append(current["intro_image"])

        for key, value in (
            ("client", client),
            ("tags", tags),
            ("description", description),
            ("image", image),
            ("intro_image", intro_image),
        ):
            if value is not None:
                current[key] = value

        if categories is not None:
            self.categories = [c for c in self.categories if c["work_id"] != work_id]
            for name in categories:
                self.categories.append({"id": next(self._ids), "work_id": work_id, "category_name": name})

        for changes in galleries:
            kind = changes.kind
            mine = self.image_rows(kind, work_id)
            removed = [r["src"] for r in mine if r["src"] in changes.deleted]
            self.images[kind] = [
                r for r in self.images[kind] if not (r["work_id"] == work_id and r["src"] in changes.deleted)
            ]
            for src, order in changes.reordered:
                for r in self.images[kind]:
                    if r["work_id"] == work_id and r["src"] == src:
                        r["sort_order"] = order
            orders = [r["sort_order"] for r in self.image_rows(kind, work_id) if r["sort_order"] is not None]
            next_order = max(orders, default=-1) + 1
            for src, order in changes.added:
                if order is None:
                    order = next_order
                    next_order += 1
                self.images[kind].append({"id": next(self._ids), "work_id": work_id, "src": src, "sort_order": order})
            if len(self.image_rows(kind, work_id)) > gallery_limits[kind]:
                raise works_repository.GalleryFullError(f"A work can have at most {gallery_limits[kind]} {kind} images.")
            unreferenced.extend(removed)

        return unreferenced

    async def delete_work(self, work_id):
        work = self.works.get(work_id)
        if work is None:
            return None
        filenames = [work["image"], work["intro_image"]]
        filenames.extend(r["src"] for r in self.image_rows("large", work_id))
        filenames.extend(r["src"] for r in self.image_rows("small", work_id))
        self.categories = [c for c in self.categories if c["work_id"] != work_id]
        for kind in ("large", "small"):
            self.images[kind] = [r for r in self.images[kind] if r["work_id"] != work_id]
        del self.works[work_id]
        return [name for name in filenames if name]

    async def reorder_works(self, items):
        snapshot = self._snapshot()
        try:
            for work_id, order in items:
                if work_id not in self.works:
                    raise works_repository.WorkNotFoundError(work_id)
                self.works[work_id]["sort_order"] = order
        except Exception:
            self._restore(snapshot)
            raise


@pytest.fixture
def store(monkeypatch):
    fake = FakeWorkStore()
    fake.install(monkeypatch)
    return fake

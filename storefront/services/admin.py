import json
import logging
import math
import re
import uuid
from decimal import Decimal
from typing import Callable, List, Optional, Sequence

from storefront.core.config import settings
from storefront.errors import DraftNotSaved, DraftValidationError, GatewayError, NotFound
from storefront.schemas import AuthUser, ImageUpload, Notice, ProductDraft, ProductImage, ProductRow, normalize_images
from storefront.services.catalog import CATALOG_ORDER
from storefront.services.formatting import CENTS

logger = logging.getLogger(__name__)

ADMIN_COLUMNS = (
    "id,name,description,category,price,stock,images,specifications,"
    "created_at,updated_at,item_type,is_active,sort_order"
)

_UNSAFE_CHARS = re.compile(r"[^a-zA-Z0-9._-]+")


async def ensure_admin(gateway) -> Optional[AuthUser]:
    """The signed-in user when it holds the admin role, otherwise None."""
    try:
        user = await gateway.auth.get_user()
        if user is None:
            return None
        if not await gateway.auth.has_role(user.id, settings.ADMIN_ROLE):
            logger.info("user %s is not %s", user.id, settings.ADMIN_ROLE)
            return None
    except GatewayError as exc:
        logger.warning("admin check failed: %s", exc.message)
        return None
    return user


def parse_specifications_text(text: Optional[str]) -> Optional[dict]:
    """Empty text is no specifications; anything else must be a JSON object."""
    trimmed = (text or "").strip()
    if not trimmed:
        return None
    try:
        value = json.loads(trimmed)
    except ValueError:
        value = None
    if not isinstance(value, dict):
        raise DraftValidationError("O campo de especificações precisa ser um objeto JSON.")
    return value


def _finite(value) -> Optional[float]:
    if value is None:
        return None
    try:
        number = float(value)
    except (TypeError, ValueError):
        return None
    return number if math.isfinite(number) else None


def _text_or_none(value: Optional[str]) -> Optional[str]:
    return (value or "").strip() or None


def build_payload(draft: ProductDraft, specifications: Optional[dict]) -> dict:
    price = _finite(draft.price)
    stock = _finite(draft.stock)
    sort_order = _finite(draft.sort_order)
    return {
        "name": draft.name.strip(),
        "description": _text_or_none(draft.description),
        "category": _text_or_none(draft.category),
        "item_type": draft.item_type,
        "price": None if price is None else Decimal(str(price)).quantize(CENTS),
        "stock": None if stock is None else int(stock),
        "is_active": bool(draft.is_active),
        "sort_order": 0 if sort_order is None else int(sort_order),
        "specifications": specifications,
        "images": [img.model_dump() for img in draft.images],
    }


def image_path(item_id, filename: str) -> str:
    """``products/<id>/<uuid>.<ext>-<safe name>``; unique per call."""
    ext = filename.split(".")[-1] or "bin"
    safe_name = _UNSAFE_CHARS.sub("-", filename)
    return f"products/{item_id}/{uuid.uuid4()}.{ext}-{safe_name}"


def search_rows(rows: Sequence[ProductRow], query: str = "") -> List[ProductRow]:
    q = (query or "").strip().lower()
    if not q:
        return list(rows)
    return [r for r in rows if q in (r.name or "").lower() or q in (r.category or "").lower()]


class AdminEditor:
    """Every operation records a Notice, then raises on failure. After each
    image change the list is read back from the store."""

    def __init__(self, gateway):
        self._gateway = gateway
        self.rows: List[ProductRow] = []
        self.loading = True
        self.error: Optional[str] = None
        self.saving = False
        self.notices: List[Notice] = []

    @property
    def _products(self):
        return self._gateway.table("products")

    def notify(self, title: str, description: Optional[str] = None, variant: str = "default") -> Notice:
        notice = Notice(title=title, description=description, variant=variant)
        self.notices.append(notice)
        return notice

    async def load(self) -> List[ProductRow]:
        self.loading = True
        try:
            rows = await self._products.select(ADMIN_COLUMNS, order=CATALOG_ORDER)
        except GatewayError as exc:
            self.error = exc.message
            self.notify("Erro ao carregar produtos", exc.message, "destructive")
        else:
            self.rows = [ProductRow.model_validate(r) for r in rows]
            self.error = None
        finally:
            self.loading = False
        return self.rows

    async def get_row(self, item_id: int) -> ProductRow:
        row = await self._products.maybe_single(ADMIN_COLUMNS, eq={"id": item_id})
        if row is None:
            raise NotFound(f"Produto {item_id} não encontrado.")
        return ProductRow.model_validate(row)

    async def open(self, item_id: int) -> ProductDraft:
        """Hydrate a draft from the stored record."""
        return ProductDraft.from_row(await self.get_row(item_id))

    async def save(self, draft: ProductDraft) -> ProductDraft:
        """Insert when ``draft.id`` is None (and assign it), update otherwise."""
        if not draft.name.strip():
            self.notify("Erro ao salvar", "Informe o nome do produto.", "destructive")
            raise DraftValidationError("Informe o nome do produto.")
        try:
            specifications = parse_specifications_text(draft.specifications_text)
        except DraftValidationError as exc:
            self.notify("JSON inválido", str(exc), "destructive")
            raise

        payload = build_payload(draft, specifications)
        self.saving = True
        try:
            if draft.id is not None:
                await self._products.update(payload, eq={"id": draft.id})
                self.notify("Produto atualizado")
                logger.info("updated product id=%s", draft.id)
            else:
                new_id = await self._products.insert(payload)
                self.notify("Produto criado")
                logger.info("created product id=%s", new_id)
                draft.id = new_id
        except GatewayError as exc:
            self.notify("Erro ao salvar", exc.message or "Não foi possível salvar.", "destructive")
            raise
        finally:
            self.saving = False

        await self.load()
        return draft

    async def remove(self, row: ProductRow, confirm: Callable[[str], bool]) -> bool:
        if not confirm(f'Excluir "{row.name}"?'):
            return False
        try:
            await self._products.delete(eq={"id": row.id})
        except GatewayError as exc:
            self.notify("Erro ao excluir", exc.message or "Não foi possível excluir.", "destructive")
            raise
        self.notify("Produto excluído")
        logger.info("deleted product id=%s", row.id)
        await self.load()
        return True

    def _require_saved(self, draft: ProductDraft) -> None:
        if draft.id is None:
            self.notify("Salve primeiro", "Crie/salve o produto antes de enviar imagens.", "destructive")
            raise DraftNotSaved("Crie/salve o produto antes de enviar imagens.")

    async def _persist_images(self, draft: ProductDraft, images: List[ProductImage]) -> List[ProductImage]:
        await self._products.update({"images": [img.model_dump() for img in images]}, eq={"id": draft.id})
        stored = await self._products.maybe_single("images", eq={"id": draft.id})
        draft.images = normalize_images(stored["images"]) if stored else list(images)
        return draft.images

    async def upload_images(self, files: Sequence[ImageUpload], draft: ProductDraft) -> List[ProductImage]:
        if not files:
            return list(draft.images)
        self._require_saved(draft)

        storage = self._gateway.storage
        uploaded: List[ProductImage] = []
        try:
            for f in files:
                path = image_path(draft.id, f.filename)
                await storage.upload(
                    path,
                    f.content,
                    content_type=f.content_type or None,
                    cache_control=settings.S3_CACHE_CONTROL,
                    upsert=False,
                )
                url = storage.public_url(path)
                if not url:
                    raise GatewayError("Não foi possível obter a URL pública da imagem.")
                uploaded.append(ProductImage(url=url, path=path, alt=f.filename))
        except GatewayError as exc:
            if uploaded:
                logger.warning("upload aborted after %d of %d files for product id=%s", len(uploaded), len(files), draft.id)
                try:
                    await self._persist_images(draft, list(draft.images) + uploaded)
                except GatewayError as persist_exc:
                    logger.error("could not attach %d uploaded images: %s", len(uploaded), persist_exc.message)
            self.notify("Erro no upload", exc.message or "Não foi possível enviar.", "destructive")
            raise

        try:
            images = await self._persist_images(draft, list(draft.images) + uploaded)
        except GatewayError as exc:
            self.notify("Erro no upload", exc.message or "Não foi possível enviar.", "destructive")
            raise
        self.notify("Imagens enviadas")
        logger.info("attached %d images to product id=%s", len(uploaded), draft.id)
        await self.load()
        return images

    async def delete_image(self, image: ProductImage, draft: ProductDraft) -> List[ProductImage]:
        self._require_saved(draft)
        remaining = [x for x in draft.images if x.path != image.path]
        try:
            await self._gateway.storage.remove([image.path])
            images = await self._persist_images(draft, remaining)
        except GatewayError as exc:
            self.notify("Erro ao remover imagem", exc.message or "Não foi possível remover.", "destructive")
            raise
        self.notify("Imagem removida")
        await self.load()
        return images

from fastapi import APIRouter, Depends, HTTPException, UploadFile, File
from typing import List

from storefront.api.deps import get_gateway, require_admin
from storefront.api.schemas import ImagesResult
from storefront.errors import DraftNotSaved, DraftValidationError, GatewayError, NotFound
from storefront.gateway import Gateway
from storefront.schemas import ImageUpload, ProductDraft
from storefront.services.admin import AdminEditor

router = APIRouter(dependencies=[Depends(require_admin)])

def _raise_http(exc: Exception):
    if isinstance(exc, (DraftValidationError, DraftNotSaved)):
        raise HTTPException(status_code=400, detail=str(exc))
    if isinstance(exc, NotFound):
        raise HTTPException(status_code=404, detail=str(exc))
    if isinstance(exc, GatewayError):
        raise HTTPException(status_code=502, detail=exc.message)
    raise exc

async def _draft(editor: AdminEditor, product_id: int) -> ProductDraft:
    try:
        return await editor.open(product_id)
    except (NotFound, GatewayError) as exc:
        _raise_http(exc)

@router.get('/products/{product_id}/draft', response_model=ProductDraft)
async def get_draft(product_id: int, gateway: Gateway = Depends(get_gateway)):
    return await _draft(AdminEditor(gateway), product_id)

@router.post('/products')
async def save_product(draft: ProductDraft, gateway: Gateway = Depends(get_gateway)):
    editor = AdminEditor(gateway)
    try:
        saved = await editor.save(draft)
    except (DraftValidationError, GatewayError) as exc:
        _raise_http(exc)
    return {"draft": saved, "notices": editor.notices}

@router.delete('/products/{product_id}')
async def delete_product(product_id: int, confirm: bool = False, gateway: Gateway = Depends(get_gateway)):
    editor = AdminEditor(gateway)
    try:
        row = await editor.get_row(product_id)
    except (NotFound, GatewayError) as exc:
        _raise_http(exc)
    try:
        deleted = await editor.remove(row, lambda prompt: confirm)
    except GatewayError as exc:
        _raise_http(exc)
    if not deleted:
        raise HTTPException(status_code=409, detail=f'Excluir "{row.name}"? Repita com confirm=true.')
    return {"deleted": product_id, "notices": editor.notices}

@router.post('/products/{product_id}/images', response_model=ImagesResult)
async def upload_product_images(product_id: int, files: List[UploadFile] = File(...), gateway: Gateway = Depends(get_gateway)):
    editor = AdminEditor(gateway)
    draft = await _draft(editor, product_id)
    uploads = [
        ImageUpload(filename=f.filename or 'upload.bin', content=await f.read(), content_type=f.content_type)
        for f in files
    ]
    try:
        images = await editor.upload_images(uploads, draft)
    except (DraftNotSaved, GatewayError) as exc:
        _raise_http(exc)
    return ImagesResult(id=product_id, images=images, notices=editor.notices)

@router.delete('/products/{product_id}/images', response_model=ImagesResult)
async def delete_product_image(product_id: int, path: str, gateway: Gateway = Depends(get_gateway)):
    editor = AdminEditor(gateway)
    draft = await _draft(editor, product_id)
    image = next((img for img in draft.images if img.path == path), None)
    if image is None:
        raise HTTPException(status_code=404, detail='Image not found')
    try:
        images = await editor.delete_image(image, draft)
    except (DraftNotSaved, GatewayError) as exc:
        _raise_http(exc)
    return ImagesResult(id=product_id, images=images, notices=editor.notices)

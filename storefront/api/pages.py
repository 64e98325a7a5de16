import logging
from typing import Any, Dict, Optional

from fastapi import APIRouter, Depends, HTTPException, Response
from fastapi.responses import RedirectResponse

from storefront.api.deps import get_gateway
from storefront.api.schemas import ItemCard, LoginPayload, LoginResult
from storefront.core.config import settings
from storefront.errors import GatewayError
from storefront.gateway import Gateway
from storefront.schemas import CatalogItem, Notice
from storefront.services.admin import AdminEditor, ensure_admin, search_rows
from storefront.services.auth_status import AuthStatus
from storefront.services.catalog import ALL_CATEGORIES, CatalogLoader, catalog_view
from storefront.services.detail import DetailLoader, DetailStatus
from storefront.services.formatting import item_type_label, price_label

logger = logging.getLogger(__name__)

router = APIRouter()

PREVIEW_NOTE = "Nota: esta tela é apenas para visualização; favoritos e pagamentos serão integrados depois."

SERVICES_CONTENT: Dict[str, Any] = {
    "title": "Serviços especializados NEWagro",
    "intro": (
        "Da calibração de pulverizadores ao conserto de monitores GPS, oferecemos suporte completo "
        "em campo para que sua operação não pare."
    ),
    "services": [
        {
            "name": "Assistência técnica em campo",
            "description": "Suporte na sua propriedade em São Borja e região para instalação, diagnóstico e ajustes finos.",
            "tag": "Atendimento sob agendamento",
        },
        {
            "name": "Calibração de pulverizadores",
            "description": "Calibração profissional focada em reduzir desperdícios e garantir aplicação precisa de insumos.",
            "tag": "Economia e eficiência no campo",
        },
        {
            "name": "Conserto e manutenção",
            "description": "Reparos de monitores GPS e displays touchscreen das principais marcas do mercado.",
            "tag": "Laboratório técnico especializado",
        },
    ],
    "about": {
        "title": "Sobre a NEWagro",
        "text": (
            "A NEWagro nasceu com o propósito de aproximar o produtor rural da tecnologia de ponta em "
            "agricultura de precisão. Com atuação focada na região de São Borja (RS), oferecemos "
            "soluções sob medida para cada realidade de campo."
        ),
        "highlights": [
            "Atendimento técnico especializado e linguagem simples.",
            "Suporte multimarcas em pilotos automáticos, pulverização e GPS.",
            "Foco em produtividade, redução de custos e sustentabilidade.",
        ],
    },
    "contact": {
        "title": "Fale com a NEWagro",
        "text": "Tire suas dúvidas, solicite um orçamento ou agende uma visita técnica.",
        "whatsapp": {"label": "(55) 99619-4261", "href": "https://wa.me/555596194261"},
        "instagram": {"label": "@newagrosb", "href": "https://instagram.com/newagrosb"},
    },
}


def card(item: CatalogItem) -> ItemCard:
    return ItemCard(
        id=item.id,
        name=item.name,
        category=item.category,
        item_type=item.item_type,
        type_label=item_type_label(item.item_type),
        price_label=price_label(item.price),
        cover=item.cover,
        href=f"/produto/{item.id}",
    )


async def header(gateway: Gateway) -> dict:
    status = await AuthStatus(gateway).mount()
    try:
        return status.as_dict()
    finally:
        status.unmount()


@router.get('/')
async def index(q: str = '', category: str = ALL_CATEGORIES, gateway: Gateway = Depends(get_gateway)):
    auth = await header(gateway)
    loader = CatalogLoader(gateway)
    try:
        state = await loader.load()
    finally:
        loader.close()
    view = catalog_view(state, q, category)
    return {
        "title": settings.SITE_TITLE,
        "auth": auth,
        "filters": {"q": q, "category": category, "categories": [ALL_CATEGORIES, *state.categories]},
        "catalog": {
            "phase": view.phase.value,
            "refreshing": view.refreshing,
            "error": view.error,
            "items": [card(x) for x in view.items],
        },
    }


@router.get('/login')
async def login_page(gateway: Gateway = Depends(get_gateway)):
    return {"title": "Entrar", "modes": ["login", "register"], "auth": await header(gateway)}


@router.post('/login', response_model=LoginResult)
async def login(payload: LoginPayload, response: Response, gateway: Gateway = Depends(get_gateway)):
    try:
        if payload.mode == 'login':
            session = await gateway.auth.sign_in(str(payload.email), payload.password)
        else:
            await gateway.auth.sign_up(str(payload.email), payload.password)
    except GatewayError as exc:
        status_code = 401 if payload.mode == 'login' else 400
        raise HTTPException(status_code=status_code, detail=exc.message or "Não foi possível completar a ação.")

    if payload.mode == 'register':
        return LoginResult(
            mode='login',
            notice=Notice(title="Cadastro realizado", description="Verifique seu e-mail para confirmar a conta, se necessário."),
        )
    response.set_cookie(
        settings.SESSION_COOKIE,
        session.access_token,
        max_age=settings.ACCESS_TOKEN_EXPIRES_SECONDS,
        httponly=True,
        samesite='lax',
    )
    return LoginResult(mode='login', notice=Notice(title="Login realizado com sucesso"), redirect='/')


@router.post('/logout')
async def logout(response: Response, gateway: Gateway = Depends(get_gateway)):
    notice = await AuthStatus(gateway).logout()
    response.delete_cookie(settings.SESSION_COOKIE)
    return {"notice": notice}


@router.get('/servicos')
async def services(gateway: Gateway = Depends(get_gateway)):
    return {**SERVICES_CONTENT, "auth": await header(gateway)}


@router.get('/admin')
async def admin_panel(q: str = '', gateway: Gateway = Depends(get_gateway)):
    user = await ensure_admin(gateway)
    if user is None:
        return RedirectResponse('/login', status_code=303)
    editor = AdminEditor(gateway)
    await editor.load()
    return {
        "user": user,
        "q": q,
        "loading": editor.loading,
        "error": editor.error,
        "rows": search_rows(editor.rows, q),
        "notices": editor.notices,
    }


@router.get('/produto/{item_id}')
async def product_page(item_id: str, gateway: Gateway = Depends(get_gateway)):
    loader = DetailLoader(gateway)
    try:
        state = await loader.load_item(item_id)
        if state.status is DetailStatus.INVALID:
            raise HTTPException(status_code=400, detail=state.error)
        if state.status is DetailStatus.NOT_FOUND:
            raise HTTPException(status_code=404, detail=state.error)
        if state.status is not DetailStatus.READY:
            raise HTTPException(status_code=502, detail=state.error)
        related = await loader.load_related(state.item.id)
    finally:
        loader.close()

    item = state.item
    return {
        "auth": await header(gateway),
        "item": {
            **card(item).model_dump(),
            "description": item.description,
            "images": item.images,
        },
        "related": {"items": [card(x) for x in related.items], "error": related.error},
        "actions": {"buy": False, "favorite": False, "note": PREVIEW_NOTE},
    }


def not_found_payload(path: str, method: Optional[str] = None) -> dict:
    logger.warning("404: user attempted to access non-existent route %s %s", method or "GET", path)
    return {"detail": "Not Found", "title": "404", "message": "Oops! Página não encontrada", "home": "/"}

"""Products API routes.

Reads are open to any authenticated caller (token or API key); writes
need the admin or super-admin role.
"""

from uuid import UUID

from fastapi import APIRouter, Depends, status

from keystone.api.dependencies import ProductRepo
from keystone.core.auth.dependencies import get_current_principal
from keystone.core.errors import NotFoundError
from keystone.core.pagination import PageParams, PageResponse, page_meta
from keystone.core.permissions.guards import require_role
from keystone.core.permissions.registry import RoleSlug
from keystone.modules.products.models import Product
from keystone.modules.products.schemas import ProductCreate, ProductResponse, ProductUpdate


router = APIRouter(prefix="/products", tags=["products"])

authenticated = Depends(get_current_principal)
product_admin = Depends(require_role(RoleSlug.ADMIN, RoleSlug.SUPER_ADMIN))


def _not_found(product_id: UUID) -> NotFoundError:
    return NotFoundError("Product not found", resource="product", resource_id=str(product_id))


async def _get_live(repo: ProductRepo, product_id: UUID) -> Product:
    product = await repo.find_by_id(product_id, exclude_deleted=True)
    if product is None:
        raise _not_found(product_id)
    return product


@router.get("", response_model=PageResponse[ProductResponse], dependencies=[authenticated])
async def list_products(params: PageParams, repo: ProductRepo) -> PageResponse[ProductResponse]:
    page = await repo.paginate(
        params.page,
        params.limit,
        search=params.search,
        sort_by=params.sort_by,
        sort_order=params.sort_order,
        exclude_deleted=True,
    )
    return PageResponse[ProductResponse](
        data=[ProductResponse.model_validate(p) for p in page.data],
        meta=page_meta(page),
    )


@router.get("/{product_id}", response_model=ProductResponse, dependencies=[authenticated])
async def get_product(product_id: UUID, repo: ProductRepo) -> ProductResponse:
    return ProductResponse.model_validate(await _get_live(repo, product_id))


@router.post(
    "",
    response_model=ProductResponse,
    status_code=status.HTTP_201_CREATED,
    dependencies=[product_admin],
)
async def create_product(data: ProductCreate, repo: ProductRepo) -> ProductResponse:
    product = await repo.create(data.model_dump())
    return ProductResponse.model_validate(product)


@router.patch("/{product_id}", response_model=ProductResponse, dependencies=[product_admin])
async def update_product(
    product_id: UUID, data: ProductUpdate, repo: ProductRepo
) -> ProductResponse:
    await _get_live(repo, product_id)
    product = await repo.update_by_id(product_id, data.model_dump(exclude_unset=True))
    if product is None:
        raise _not_found(product_id)
    return ProductResponse.model_validate(product)


@router.delete(
    "/{product_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    dependencies=[product_admin],
)
async def delete_product(product_id: UUID, repo: ProductRepo) -> None:
    if not await repo.soft_delete_by_id(product_id):
        raise _not_found(product_id)

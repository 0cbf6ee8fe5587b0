"""
Products endpoints — raw PIM records through the paginator.

POST /products/          getProducts, or getProductsByFilter when updated_since is set
POST /products/grouped   getGroupedProducts
"""

from fastapi import APIRouter, Depends

from skwirrel_sync.api.dependencies import get_app_settings, get_paginator
from skwirrel_sync.config import Settings
from skwirrel_sync.schemas.request_schema import (
    GroupedProductQueryRequest,
    ProductQueryRequest,
)
from skwirrel_sync.schemas.response_schema import ProductListResponse
from skwirrel_sync.services.paginator import (
    GROUPED_PRODUCTS_METHOD,
    PRODUCTS_BY_FILTER_METHOD,
    PRODUCTS_METHOD,
    Paginator,
    build_grouped_params,
    build_product_params,
    updated_since_filter,
)

router = APIRouter(prefix="/products", tags=["Products"])


@router.post(
    "/",
    response_model=ProductListResponse,
    summary="Fetch products from the PIM",
    description=(
        "Fetches one page, or every page when return_all is set. With "
        "updated_since the filtered method is used and only products "
        "modified relative to that timestamp are returned."
    ),
)
async def list_products(
    req: ProductQueryRequest,
    paginator: Paginator = Depends(get_paginator),
    settings: Settings = Depends(get_app_settings),
) -> ProductListResponse:
    base_params = build_product_params(settings)
    if req.collection_ids:
        base_params["collection_ids"] = req.collection_ids

    if req.updated_since:
        method = PRODUCTS_BY_FILTER_METHOD
        records = paginator.fetch_filtered(
            method,
            updated_since_filter(req.updated_since, req.operator),
            base_params,
            req.limit,
            req.return_all,
            start_page=req.page,
        )
    else:
        method = PRODUCTS_METHOD
        records = paginator.fetch_all(
            method, base_params, req.limit, req.return_all, start_page=req.page)

    products = [record async for record in records]
    return ProductListResponse(
        method=method,
        total_count=len(products),
        pages_fetched=paginator.pages_fetched,
        records=products,
    )


@router.post(
    "/grouped",
    response_model=ProductListResponse,
    summary="Fetch grouped products from the PIM",
)
async def list_grouped_products(
    req: GroupedProductQueryRequest,
    paginator: Paginator = Depends(get_paginator),
) -> ProductListResponse:
    params = build_grouped_params(
        collection_ids=req.collection_ids,
        include_products=req.include_products,
        include_etim_features=req.include_etim_features,
    )
    groups = [
        record
        async for record in paginator.fetch_grouped(
            GROUPED_PRODUCTS_METHOD, params, req.limit, req.return_all, start_page=req.page)
    ]
    return ProductListResponse(
        method=GROUPED_PRODUCTS_METHOD,
        total_count=len(groups),
        pages_fetched=paginator.pages_fetched,
        records=groups,
    )

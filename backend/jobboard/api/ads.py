from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, func
from sqlalchemy.orm import selectinload
from typing import Optional
from jobboard.database import get_db
from jobboard.errors import NotFound
from jobboard.models import Ad, AdStatus, Payment, User
from jobboard.schemas import (
    AdCreate,
    AdListResponse,
    AdResponse,
    AdUpdate,
    CheckoutResponse,
    JumpResponse,
    RenewRequest,
    UpgradeRequest,
    VerifyBusinessRequest,
    VerifyBusinessResponse,
)
from jobboard.auth import get_current_user
from jobboard.services import jumps, lifecycle
from jobboard.services.clients import BusinessRegistryClient, RegistryStatus
from jobboard.services.pricing import get_product

router = APIRouter()


def get_registry_client() -> BusinessRegistryClient:
    return BusinessRegistryClient()


def _checkout_response(ad: Ad, payment: Optional[Payment]) -> CheckoutResponse:
    product = get_product(ad.product_id)
    if payment is None:
        return CheckoutResponse(ad_id=ad.id, status=ad.status, amount=0, order_name=product.name)

    snapshot = payment.item_snapshot
    return CheckoutResponse(
        ad_id=ad.id,
        status=ad.status,
        order_id=payment.order_id,
        amount=payment.amount,
        order_name=f"{snapshot['product']['name']} {snapshot['duration']}d",
    )


@router.get("", response_model=AdListResponse)
async def list_ads(
    product_id: Optional[str] = Query(None),
    business_type: Optional[str] = Query(None),
    search: Optional[str] = Query(None),
    page: int = Query(1, ge=1),
    per_page: int = Query(20, ge=1, le=100),
    db: AsyncSession = Depends(get_db),
):
    query = select(Ad).where(Ad.status == AdStatus.ACTIVE)
    count_query = select(func.count(Ad.id)).where(Ad.status == AdStatus.ACTIVE)

    if product_id:
        query = query.where(Ad.product_id == product_id)
        count_query = count_query.where(Ad.product_id == product_id)

    if business_type:
        query = query.where(Ad.business_type == business_type)
        count_query = count_query.where(Ad.business_type == business_type)

    if search:
        search_filter = Ad.title.ilike(f"%{search}%") | Ad.business_name.ilike(f"%{search}%")
        query = query.where(search_filter)
        count_query = count_query.where(search_filter)

    total_result = await db.execute(count_query)
    total = total_result.scalar() or 0

    # Most recently jumped first
    query = query.options(selectinload(Ad.options)).order_by(Ad.last_jumped_at.desc(), Ad.created_at.desc())
    query = query.offset((page - 1) * per_page).limit(per_page)

    result = await db.execute(query)
    ads = result.scalars().all()

    return AdListResponse(
        ads=[AdResponse.model_validate(ad) for ad in ads],
        total=total,
        page=page,
        per_page=per_page,
    )


@router.get("/mine", response_model=list[AdResponse])
async def list_my_ads(
    db: AsyncSession = Depends(get_db),
    user: User = Depends(get_current_user),
):
    result = await db.execute(
        select(Ad)
        .where(Ad.user_id == user.id)
        .options(selectinload(Ad.options))
        .order_by(Ad.created_at.desc())
    )
    return [AdResponse.model_validate(ad) for ad in result.scalars().all()]


@router.get("/{ad_id}", response_model=AdResponse)
async def get_ad(ad_id: str, db: AsyncSession = Depends(get_db)):
    ad = await lifecycle.get_ad(db, ad_id)
    if ad.status != AdStatus.ACTIVE:
        raise NotFound("Ad not found")

    await lifecycle.record_view(db, ad_id)
    return AdResponse.model_validate(await lifecycle.get_ad(db, ad_id))


@router.post("/{ad_id}/click", status_code=status.HTTP_204_NO_CONTENT)
async def click_ad(ad_id: str, db: AsyncSession = Depends(get_db)):
    await lifecycle.record_click(db, ad_id)


@router.post("", response_model=CheckoutResponse, status_code=status.HTTP_201_CREATED)
async def create_ad(
    data: AdCreate,
    db: AsyncSession = Depends(get_db),
    user: User = Depends(get_current_user),
):
    ad, payment = await lifecycle.create_ad(db, user, data)
    return _checkout_response(ad, payment)


@router.patch("/{ad_id}", response_model=AdResponse)
async def edit_ad(
    ad_id: str,
    changes: AdUpdate,
    db: AsyncSession = Depends(get_db),
    user: User = Depends(get_current_user),
):
    ad = await lifecycle.edit_ad(db, user, ad_id, changes)
    return AdResponse.model_validate(ad)


@router.post("/{ad_id}/jump", response_model=JumpResponse)
async def jump_ad(
    ad_id: str,
    db: AsyncSession = Depends(get_db),
    user: User = Depends(get_current_user),
):
    result = await jumps.manual_jump(db, user, ad_id)
    return JumpResponse(remaining=result.remaining, next_available=result.next_available)


@router.post("/{ad_id}/upgrade", response_model=CheckoutResponse, status_code=status.HTTP_201_CREATED)
async def upgrade_ad(
    ad_id: str,
    data: UpgradeRequest,
    db: AsyncSession = Depends(get_db),
    user: User = Depends(get_current_user),
):
    payment = await lifecycle.request_upgrade(db, user, ad_id, data)
    return _checkout_response(await lifecycle.get_ad(db, ad_id), payment)


@router.post("/{ad_id}/renew", response_model=CheckoutResponse, status_code=status.HTTP_201_CREATED)
async def renew_ad(
    ad_id: str,
    data: RenewRequest,
    db: AsyncSession = Depends(get_db),
    user: User = Depends(get_current_user),
):
    payment = await lifecycle.request_renew(db, user, ad_id, data)
    return _checkout_response(await lifecycle.get_ad(db, ad_id), payment)


@router.post("/{ad_id}/verify-business", response_model=VerifyBusinessResponse)
async def verify_business(
    ad_id: str,
    data: VerifyBusinessRequest,
    db: AsyncSession = Depends(get_db),
    user: User = Depends(get_current_user),
    registry: BusinessRegistryClient = Depends(get_registry_client),
):
    result = await lifecycle.verify_business(db, user, ad_id, data.business_number, registry=registry)
    return VerifyBusinessResponse(
        registry_status=result.status.value,
        verified=result.valid,
        manual_review=result.status == RegistryStatus.UNAVAILABLE,
    )

import logging
from datetime import datetime, timezone
from typing import Annotated, Any, List, Optional

from fastapi import APIRouter, Depends
from pydantic import AfterValidator, BaseModel, ConfigDict, Field

from database import CONFLICT_MESSAGES, PRODUCTS, MongoStore, get_store, parse_id, serialize_document
from errors import BadRequestError, ConflictError, NotFoundError
from schemas import Product as ProductSchema

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/product", tags=["product"])

MIN_PRICE = 0.50


def _check_min_price(price: float) -> float:
    if price < MIN_PRICE:
        raise ValueError("Minimum product price is 50 cents.")
    return price


Price = Annotated[float, Field(le=10000), AfterValidator(_check_min_price)]


# Models for requests
class ProductCreateRequest(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True)

    name: str = Field(..., min_length=1, max_length=100)
    description: str = Field(..., min_length=1, max_length=250)
    category: str = Field(..., min_length=1, max_length=250)
    price: Price


class ProductUpdateRequest(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True, populate_by_name=True)

    name: Optional[str] = Field(None, min_length=1, max_length=100)
    description: Optional[str] = Field(None, min_length=1, max_length=250)
    category: Optional[str] = Field(None, min_length=1, max_length=250)
    price: Optional[Price] = None

    # Only accepted so that identity reassignment can be rejected explicitly
    id: Optional[Any] = None
    object_id: Optional[Any] = Field(None, alias="_id")


def _ensure_name_free(store: MongoStore, name: str, current_id=None) -> None:
    existing = store.find_by_field(PRODUCTS, "name", name)
    if existing is not None and existing["_id"] != current_id:
        raise ConflictError(CONFLICT_MESSAGES[PRODUCTS])


def _get_existing(store: MongoStore, product_id: str):
    oid = parse_id(product_id)
    product = store.find_by_id(PRODUCTS, oid)
    if product is None:
        raise NotFoundError(f"Product {product_id} not found.")
    return oid, product


@router.get("/list")
def list_products(store: MongoStore = Depends(get_store)) -> List[dict]:
    return [serialize_document(d) for d in store.list_all(PRODUCTS)]


@router.get("/id/{product_id}")
def get_product_by_id(product_id: str, store: MongoStore = Depends(get_store)):
    _, product = _get_existing(store, product_id)
    return serialize_document(product)


@router.get("/name/{name}")
def get_product_by_name(name: str, store: MongoStore = Depends(get_store)):
    product = store.find_by_field(PRODUCTS, "name", name)
    if product is None:
        raise NotFoundError(f"Product {name} not found.")
    return serialize_document(product)


@router.post("/new")
def create_product(payload: ProductCreateRequest, store: MongoStore = Depends(get_store)):
    _ensure_name_free(store, payload.name)
    now = datetime.now(timezone.utc)
    product = ProductSchema(**payload.model_dump(), createdOn=now, lastUpdatedOn=now)
    product_id, stored = store.insert(PRODUCTS, product)
    logger.info("Added product %s (%s)", product_id, payload.name)
    return {
        "result": {"acknowledged": True, "insertedId": str(product_id)},
        "addedProduct": serialize_document(stored),
    }


@router.put("/{product_id}")
def update_product(
    product_id: str,
    payload: Optional[ProductUpdateRequest] = None,
    store: MongoStore = Depends(get_store),
):
    oid, current = _get_existing(store, product_id)
    payload = payload or ProductUpdateRequest()
    if payload.id is not None or payload.object_id is not None:
        raise BadRequestError("Cannot reassign the product id here.")

    supplied = payload.model_dump(include={"name", "description", "category", "price"}, exclude_none=True)
    if "name" in supplied and supplied["name"] != current.get("name"):
        _ensure_name_free(store, supplied["name"], current_id=oid)

    updated = {
        field: supplied.get(field, current.get(field))
        for field in ("name", "description", "category", "price")
    }
    updated["lastUpdatedOn"] = datetime.now(timezone.utc)

    if store.update_partial(PRODUCTS, oid, updated).matched == 0:
        raise NotFoundError(f"Product {product_id} not found.")
    logger.info("Updated product %s", product_id)
    return {"message": f"Product {product_id} updated!"}


@router.delete("/{product_id}")
def delete_product(product_id: str, store: MongoStore = Depends(get_store)):
    oid, _ = _get_existing(store, product_id)
    if not store.delete(PRODUCTS, oid):
        raise NotFoundError(f"Product {product_id} not found.")
    logger.info("Deleted product %s", product_id)
    return {"message": f"Product {product_id} deleted from inventory."}

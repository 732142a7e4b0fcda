from typing import Callable, Optional

from dotenv import load_dotenv
from fastapi import Depends, FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import BaseModel

# Load environment variables
load_dotenv()

from shop.db import db_manager
from shop.env_config import get_config_summary, get_cors_origins, startup_validation
from shop.errors import DatabaseError, FaceReplacementError
from shop.face_replacement import VARIANT_ROUTES, VariantRoute, replace_face
from shop.object_storage import ObjectStorage, get_object_storage, get_storage_client, is_storage_configured
from shop.products import ProductStore, get_product_store
from shop.remote_fetch import fetch_image_bytes

API_VERSION = "1.0.0"

app = FastAPI(title="Cofinxy Store API", version=API_VERSION)

app.add_middleware(
    CORSMiddleware,
    allow_origins=get_cors_origins(),
    allow_credentials=True,
    allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS", "PATCH"],
    allow_headers=["Content-Type", "Authorization", "X-Requested-With", "Accept", "Origin"],
)


def get_image_fetcher() -> Callable[[str], bytes]:
    """FastAPI dependency (overridden in tests)."""
    return fetch_image_bytes


# ============================================================================
# STARTUP & HEALTH
# ============================================================================

@app.on_event("startup")
async def startup_event():
    """Validate configuration and connect to the database."""
    startup_validation()

    success, message = await db_manager.initialize()
    if success:
        print(f"✅ Database: {message}")
    else:
        print(f"⚠️ Database: {message}")
        print("   App will continue without database. Product lookups will return 503.")


@app.on_event("shutdown")
async def shutdown_event():
    await db_manager.close()
    print("🔌 Database connections closed.")


@app.exception_handler(RequestValidationError)
async def request_validation_handler(request: Request, exc: RequestValidationError):
    # Same envelope as the face replacement errors instead of FastAPI's 422
    return JSONResponse({
        "success": False,
        "message": "Invalid request body",
        "error": str(exc.errors()),
    }, status_code=400)


@app.get("/api/health", response_class=JSONResponse)
async def health():
    """Basic health check for load balancers."""
    return JSONResponse({
        "status": "ok",
        "service": "cofinxy-store-api",
        "version": API_VERSION
    })


@app.get("/api/health/db", response_class=JSONResponse)
async def health_db():
    """SELECT 1 against the product database."""
    if not db_manager.connected:
        return JSONResponse({
            "ok": False,
            "error": "Database not connected",
        }, status_code=503)

    try:
        _, result = await db_manager.test_connection()
        return JSONResponse({"ok": True, "db": result, "port": db_manager.connection_info.get("port")})
    except Exception as e:
        return JSONResponse({"ok": False, "error": str(e)[:200]}, status_code=503)


@app.get("/api/health/storage", response_class=JSONResponse)
async def storage_health():
    """Check that the Supabase bucket is reachable."""
    if not is_storage_configured():
        return JSONResponse({
            "ok": False,
            "configured": False,
            "message": "Supabase Storage not configured"
        })

    storage = get_object_storage()
    try:
        get_storage_client().storage.from_(storage.bucket).list(path="")
        return JSONResponse({
            "ok": True,
            "configured": True,
            "bucket": storage.bucket,
            "message": "Supabase Storage healthy"
        })
    except Exception as e:
        return JSONResponse({
            "ok": False,
            "configured": True,
            "error": str(e)[:100],
            "message": "Supabase Storage error"
        })


@app.get("/api/config-check", response_class=JSONResponse)
async def config_check():
    """Non-secret configuration summary for debugging."""
    summary = get_config_summary()

    return JSONResponse({
        "db": {
            "configured": summary["db_configured"],
            "host": summary["db_host"],
            "port": summary["db_port"],
            "warnings": summary["db_warnings"]
        },
        "storage": {
            "configured": summary["storage_configured"],
            "bucket": summary["storage_bucket"],
            "project_ref": summary["supabase_project_ref"],
            "warnings": summary["supabase_warnings"],
            "missing_vars": summary["storage_missing_vars"]
        },
        "cors_origins": summary["cors_origins"],
    })


# ============================================================================
# Face Replacement Endpoints
# ============================================================================

class FaceReplacementRequest(BaseModel):
    faceImageBase64: Optional[str] = None
    productId: Optional[str] = None


async def _run_face_replacement(
    route: VariantRoute,
    body: FaceReplacementRequest,
    store: ProductStore,
    storage: ObjectStorage,
    fetch_image: Callable[[str], bytes],
) -> JSONResponse:
    try:
        result = await replace_face(
            body.faceImageBase64, body.productId, route, store, storage, fetch_image
        )
        return JSONResponse(result)
    except FaceReplacementError as e:
        payload = e.to_response()
        if e.status_code >= 500:
            print(f"❌ [FACE] {route.variant} replacement error: {e}")
            payload["message"] = route.failure_message
        return JSONResponse(payload, status_code=e.status_code)
    except Exception as e:
        print(f"❌ [FACE] {route.variant} replacement unexpected error: {e!r}")
        return JSONResponse({
            "success": False,
            "message": route.failure_message,
            "error": str(e),
        }, status_code=500)


@app.post("/api/products/organic-face-replacement", response_class=JSONResponse)
async def organic_face_replacement(
    body: FaceReplacementRequest,
    store: ProductStore = Depends(get_product_store),
    storage: ObjectStorage = Depends(get_object_storage),
    fetch_image: Callable[[str], bytes] = Depends(get_image_fetcher),
):
    """Border-free oval face + neck replacement, aspect ratio preserved."""
    return await _run_face_replacement(VARIANT_ROUTES["organic"], body, store, storage, fetch_image)


# Older frontend builds call the organic pipeline under this name
app.add_api_route(
    "/api/products/precision-face-neck-cutout",
    organic_face_replacement,
    methods=["POST"],
    response_class=JSONResponse,
)


@app.post("/api/products/seamless-face-replacement", response_class=JSONResponse)
async def seamless_face_replacement(
    body: FaceReplacementRequest,
    store: ProductStore = Depends(get_product_store),
    storage: ObjectStorage = Depends(get_object_storage),
    fetch_image: Callable[[str], bytes] = Depends(get_image_fetcher),
):
    """Face + shoulders with skin-tone matching."""
    return await _run_face_replacement(VARIANT_ROUTES["seamless"], body, store, storage, fetch_image)


@app.post("/api/products/advanced-seamless-replacement", response_class=JSONResponse)
async def advanced_seamless_replacement(
    body: FaceReplacementRequest,
    store: ProductStore = Depends(get_product_store),
    storage: ObjectStorage = Depends(get_object_storage),
    fetch_image: Callable[[str], bytes] = Depends(get_image_fetcher),
):
    """Wide shoulder replacement with two-channel color matching."""
    return await _run_face_replacement(VARIANT_ROUTES["advanced"], body, store, storage, fetch_image)


# ============================================================================
# Catalog (read-only)
# ============================================================================

def _database_error_response(e: DatabaseError) -> JSONResponse:
    print(f"❌ [DB] {e}")
    return JSONResponse({"message": "Server error", "error": e.detail or e.message}, status_code=503)


@app.get("/api/products", response_class=JSONResponse)
async def get_all_products(store: ProductStore = Depends(get_product_store)):
    try:
        products = await store.list_all()
    except DatabaseError as e:
        return _database_error_response(e)
    return JSONResponse(jsonable_encoder({"products": products}))


@app.get("/api/products/featured", response_class=JSONResponse)
async def get_featured_products(store: ProductStore = Depends(get_product_store)):
    try:
        products = await store.list_featured()
    except DatabaseError as e:
        return _database_error_response(e)
    if not products:
        return JSONResponse({"message": "No featured products found"}, status_code=404)
    return JSONResponse(jsonable_encoder(products))


@app.get("/api/products/recommendations", response_class=JSONResponse)
async def get_recommended_products(store: ProductStore = Depends(get_product_store)):
    try:
        products = await store.list_recommended()
    except DatabaseError as e:
        return _database_error_response(e)
    return JSONResponse(jsonable_encoder(products))


@app.get("/api/products/category/{category}", response_class=JSONResponse)
async def get_products_by_category(category: str, store: ProductStore = Depends(get_product_store)):
    try:
        products = await store.list_by_category(category)
    except DatabaseError as e:
        return _database_error_response(e)
    return JSONResponse(jsonable_encoder({"products": products}))


@app.get("/api/products/{product_id}", response_class=JSONResponse)
async def get_product_by_id(product_id: str, store: ProductStore = Depends(get_product_store)):
    try:
        product = await store.find_by_id(product_id)
    except DatabaseError as e:
        return _database_error_response(e)
    if not product:
        return JSONResponse({"message": "Product not found"}, status_code=404)
    return JSONResponse(jsonable_encoder(product))

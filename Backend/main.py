import logging
from datetime import datetime, timedelta, timezone
from typing import Optional, List
from contextlib import asynccontextmanager

from fastapi import FastAPI, Depends, HTTPException, status, UploadFile, File, Form, Query, Response
from fastapi.middleware.cors import CORSMiddleware
from fastapi.security import OAuth2PasswordBearer, OAuth2PasswordRequestForm
from passlib.context import CryptContext
from pydantic import ValidationError
from jose import jwt, JWTError

import library
from db import supabase, check_connection
from models import User, Role, ProviderTag
from config import settings
from errors import UploadValidationError, OversizedFileError, ProviderError, MailerError
from imagekit import ImageKitAccount, ImageKitClient
from mailer import EmailJSConfig, Mailer
from routing import provider_info
from schemas import (
    RegisterIn, Token, DocumentFieldsIn, LinkUploadIn, DocumentUpdate, DocumentOut, CreatedOut,
    DownloadOut, ProviderInfoOut, CategoryIn, CategoryUpdate, CategoryOut, DedupeOut,
    AccessRequestIn, CategoryRequestIn,
)
from uploads import upload_pdf, create_from_link

# Logging Setup
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)

# Security Setup
pwd_context = CryptContext(schemes=["argon2"], deprecated="auto")
oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/api/login")

# Storage accounts, keyed by the provider tag recorded on each document
imagekit_clients = {
    ProviderTag.IMAGEKIT_SMALL: ImageKitClient(ImageKitAccount(
        tag=ProviderTag.IMAGEKIT_SMALL,
        public_key=settings.imagekit_small_public_key,
        private_key=settings.imagekit_small_private_key,
        folder="/pdf-library/small-pdfs",
        prefix="small",
    )),
    ProviderTag.IMAGEKIT_LARGE: ImageKitClient(ImageKitAccount(
        tag=ProviderTag.IMAGEKIT_LARGE,
        public_key=settings.imagekit_public_key,
        private_key=settings.imagekit_private_key,
        folder="/pdf-library/large-pdfs",
        prefix="large",
    )),
}

mailer = Mailer(EmailJSConfig(
    service_id=settings.emailjs_service_id,
    template_id=settings.emailjs_template_id,
    public_key=settings.emailjs_public_key,
    private_key=settings.emailjs_private_key,
    admin_email=settings.admin_email,
))

@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Lifespan context manager for FastAPI.
    Handles startup and shutdown events.
    """
    logger.info("Application startup: Initializing resources...")

    for tag, client in imagekit_clients.items():
        if client.account.has_placeholder_keys:
            logger.warning(f"ImageKit account {tag.value} still has placeholder keys; uploads routed to it will fail")
        else:
            logger.info(f"ImageKit account {tag.value} configured")

    if not settings.emailjs_service_id or not settings.admin_email:
        logger.warning("EmailJS is not configured; access and category requests will fail")

    try:
        check_connection(supabase, library.DOCUMENTS_TABLE)
        check_connection(supabase, library.CATEGORIES_TABLE)
    except Exception as e:
        logger.critical(f"CRITICAL: Supabase connection failed. Error: {e}")
        raise

    logger.info("Application startup complete.")
    yield
    logger.info("Application shutdown: Cleaning up resources...")

app = FastAPI(
    title="PDF Library",
    lifespan=lifespan,
    version="1.0.0"
)

# CORS Middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],  # The browser UI is served from a different origin
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Utilities
def get_password_hash(password: str) -> str:
    return pwd_context.hash(password)

def verify_password(plain_password: str, hashed_password: str) -> bool:
    return pwd_context.verify(plain_password, hashed_password)

def create_access_token(data: dict, expires_delta: Optional[timedelta] = None):
    to_encode = data.copy()
    if expires_delta:
        expire = datetime.now(timezone.utc) + expires_delta
    else:
        expire = datetime.now(timezone.utc) + timedelta(minutes=settings.access_token_expire_minutes)
    to_encode.update({"exp": expire})
    encoded_jwt = jwt.encode(to_encode, settings.secret_key, algorithm=settings.algorithm)
    return encoded_jwt

def token_for(user_data: dict) -> dict:
    access_token = create_access_token(
        data={"sub": str(user_data.get("id")), "role": user_data.get("role")},
        expires_delta=timedelta(minutes=settings.access_token_expire_minutes),
    )
    return {"access_token": access_token, "token_type": "bearer"}

async def get_current_user(token: str = Depends(oauth2_scheme)):
    credentials_exception = HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Could not validate credentials",
        headers={"WWW-Authenticate": "Bearer"},
    )
    try:
        payload = jwt.decode(token, settings.secret_key, algorithms=[settings.algorithm])
        user_id: Optional[str] = payload.get("sub")
        if user_id is None:
            raise credentials_exception
    except JWTError:
        raise credentials_exception

    try:
        response = supabase.table(library.USERS_TABLE).select("*").eq("id", user_id).limit(1).execute()
        if not response.data:
            raise credentials_exception
        return User(**response.data[0])
    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"Error fetching user: {e}")
        raise credentials_exception

def require_roles(*roles: Role):
    async def checker(current_user: User = Depends(get_current_user)) -> User:
        if current_user.role not in roles:
            raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Not allowed for this role")
        return current_user
    return checker

require_uploader = require_roles(Role.GUEST, Role.ADMIN)
require_admin = require_roles(Role.ADMIN)

def store_error(action: str, e: Exception) -> HTTPException:
    logger.error(f"Database error {action}: {e}")
    return HTTPException(status_code=500, detail="Internal Server Error")

def parse_fields(model, **values):
    try:
        return model(**values)
    except ValidationError as e:
        raise HTTPException(
            status_code=422,
            detail=[f"{'.'.join(str(p) for p in err['loc'])}: {err['msg']}" for err in e.errors()],
        )

def load_document(document_id: str):
    try:
        document = library.get_document(supabase, document_id)
    except Exception as e:
        raise store_error("loading document", e)
    if document is None:
        raise HTTPException(status_code=404, detail="Document not found")
    return document

# Auth Endpoints
@app.post("/api/register", response_model=Token)
def register(user_in: RegisterIn):
    email = user_in.email.lower()

    # Check if user exists
    try:
        existing_user = supabase.table(library.USERS_TABLE).select("id").eq("email", email).execute()
    except Exception as e:
        raise store_error("during registration check", e)
    if existing_user.data:
        raise HTTPException(status_code=400, detail="User already registered")

    new_user_data = {
        "name": user_in.name,
        "email": email,
        "role": Role.GUEST.value,
        "password_hash": get_password_hash(user_in.password),
        "created_at": datetime.now(timezone.utc).isoformat(),
    }

    try:
        response = supabase.table(library.USERS_TABLE).insert(new_user_data).execute()
    except Exception as e:
        raise store_error("during registration insert", e)
    if not response.data or not isinstance(response.data[0], dict):
        logger.error(f"Unexpected response format from Supabase: {response.data}")
        raise HTTPException(status_code=500, detail="Failed to create user")

    created_user = response.data[0]
    logger.info(f"Registered guest user {created_user.get('id')}")
    return token_for(created_user)

@app.post("/api/login", response_model=Token)
def login(form_data: OAuth2PasswordRequestForm = Depends()):
    # username field carries the email address
    email = form_data.username.lower()

    try:
        response = supabase.table(library.USERS_TABLE).select("*").eq("email", email).limit(1).execute()
        user_data = response.data[0] if response.data else None
    except Exception as e:
        raise store_error("during login", e)

    if not user_data or not isinstance(user_data, dict) or not verify_password(form_data.password, str(user_data.get("password_hash"))):
        logger.warning(f"Failed login attempt for {email}")
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Incorrect email or password",
            headers={"WWW-Authenticate": "Bearer"},
        )

    return token_for(user_data)

# Document Endpoints
@app.get("/api/documents", response_model=List[DocumentOut])
def list_documents(
    search: str = Query(""),
    category: List[str] = Query([]),
    sort: str = Query("newest", pattern="^(newest|oldest|most-viewed)$"),
):
    try:
        return library.list_documents(supabase, search=search, categories=category, sort=sort)
    except Exception as e:
        raise store_error("listing documents", e)

@app.get("/api/documents/{document_id}", response_model=DocumentOut)
def get_document(document_id: str):
    return load_document(document_id)

@app.post("/api/documents", response_model=CreatedOut, status_code=status.HTTP_201_CREATED)
async def upload_document(
    file: UploadFile = File(...),
    title: str = Form(...),
    author: str = Form(...),
    description: str = Form(""),
    categories: List[str] = Form([]),
    tags: List[str] = Form([]),
    current_user: User = Depends(require_uploader),
):
    fields = parse_fields(
        DocumentFieldsIn,
        title=title, author=author, description=description, categories=categories, tags=tags,
    )
    content = await file.read()

    try:
        document_id = await upload_pdf(
            supabase,
            imagekit_clients,
            filename=file.filename or "",
            content_type=file.content_type or "",
            content=content,
            fields=fields,
            uploaded_by=current_user.id,
        )
    except OversizedFileError as e:
        raise HTTPException(status_code=413, detail=str(e))
    except UploadValidationError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except ProviderError as e:
        logger.error(f"Storage provider error during upload: {e}")
        raise HTTPException(status_code=502, detail=e.message)
    except Exception as e:
        raise store_error("during document upload", e)

    return {"id": document_id}

@app.post("/api/documents/link", response_model=CreatedOut, status_code=status.HTTP_201_CREATED)
def upload_document_link(
    link_in: LinkUploadIn,
    current_user: User = Depends(require_uploader),
):
    try:
        document_id = create_from_link(
            supabase, url=link_in.pdf_url, fields=link_in, uploaded_by=current_user.id,
        )
    except UploadValidationError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except Exception as e:
        raise store_error("during link upload", e)
    return {"id": document_id}

@app.patch("/api/documents/{document_id}", response_model=DocumentOut)
def update_document(
    document_id: str,
    updates: DocumentUpdate,
    current_user: User = Depends(require_admin),
):
    load_document(document_id)
    changes = updates.model_dump(exclude_unset=True)
    if changes:
        try:
            library.update_document(supabase, document_id, changes)
        except Exception as e:
            raise store_error("updating document", e)
    return load_document(document_id)

@app.delete("/api/documents/{document_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_document(
    document_id: str,
    current_user: User = Depends(require_admin),
):
    document = load_document(document_id)
    try:
        await library.delete_document(supabase, imagekit_clients, document)
    except ProviderError as e:
        logger.error(f"Storage provider error during delete: {e}")
        raise HTTPException(status_code=502, detail=e.message)
    except Exception as e:
        raise store_error("deleting document", e)
    logger.info(f"User {current_user.id} deleted document {document_id}")
    return Response(status_code=status.HTTP_204_NO_CONTENT)

@app.post("/api/documents/{document_id}/view", status_code=status.HTTP_204_NO_CONTENT)
def record_view(document_id: str):
    try:
        library.increment_view_count(supabase, document_id)
    except Exception as e:
        raise store_error("incrementing view count", e)
    return Response(status_code=status.HTTP_204_NO_CONTENT)

@app.post("/api/documents/{document_id}/download", response_model=DownloadOut)
def record_download(document_id: str):
    document = load_document(document_id)
    try:
        library.increment_download_count(supabase, document_id)
    except Exception as e:
        raise store_error("incrementing download count", e)
    return {"url": document.pdf_url, "file_name": document.file_name or f"{document.title}.pdf"}

@app.get("/api/uploads/provider", response_model=ProviderInfoOut)
def get_provider_info(size: int = Query(..., ge=0)):
    provider, description = provider_info(size)
    return {"provider": provider, "description": description}

# Category Endpoints
@app.get("/api/categories", response_model=List[CategoryOut])
def list_categories():
    try:
        return library.list_categories(supabase)
    except Exception as e:
        raise store_error("listing categories", e)

@app.post("/api/categories", response_model=CreatedOut, status_code=status.HTTP_201_CREATED)
def create_category(
    category_in: CategoryIn,
    current_user: User = Depends(require_admin),
):
    try:
        category_id = library.create_category(supabase, category_in.model_dump())
    except Exception as e:
        raise store_error("creating category", e)
    return {"id": category_id}

@app.post("/api/categories/dedupe", response_model=DedupeOut)
def dedupe_categories(current_user: User = Depends(require_admin)):
    try:
        removed = library.remove_duplicate_categories(supabase)
    except Exception as e:
        raise store_error("removing duplicate categories", e)
    return {"removed": removed}

def load_category(category_id: str):
    try:
        category = library.get_category(supabase, category_id)
    except Exception as e:
        raise store_error("loading category", e)
    if category is None:
        raise HTTPException(status_code=404, detail="Category not found")
    return category

@app.patch("/api/categories/{category_id}", response_model=CategoryOut)
def update_category(
    category_id: str,
    updates: CategoryUpdate,
    current_user: User = Depends(require_admin),
):
    load_category(category_id)
    changes = updates.model_dump(exclude_unset=True)
    if changes:
        try:
            library.update_category(supabase, category_id, changes)
        except Exception as e:
            raise store_error("updating category", e)
    return load_category(category_id)

@app.delete("/api/categories/{category_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_category(
    category_id: str,
    current_user: User = Depends(require_admin),
):
    load_category(category_id)
    try:
        library.delete_category(supabase, category_id)
    except Exception as e:
        raise store_error("deleting category", e)
    return Response(status_code=status.HTTP_204_NO_CONTENT)

# Request Endpoints
@app.post("/api/requests/access", status_code=status.HTTP_202_ACCEPTED)
async def request_access(request_in: AccessRequestIn):
    try:
        await mailer.send_access_request(request_in.name, request_in.email, request_in.reason)
    except MailerError as e:
        logger.error(f"Email relay error for access request: {e}")
        raise HTTPException(status_code=502, detail="Could not send request")
    return {"status": "sent"}

@app.post("/api/requests/category", status_code=status.HTTP_202_ACCEPTED)
async def request_category(request_in: CategoryRequestIn):
    try:
        await mailer.send_category_request(
            request_in.name,
            request_in.email,
            request_in.category_name,
            request_in.description,
            request_in.examples,
        )
    except MailerError as e:
        logger.error(f"Email relay error for category request: {e}")
        raise HTTPException(status_code=502, detail="Could not send request")
    return {"status": "sent"}

if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "main:app",
        host="0.0.0.0",
        port=8000,
        reload=True
    )

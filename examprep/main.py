from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from contextlib import asynccontextmanager
from examprep.routers import otp, auth, batches, enrollment, student, admin
from examprep.core.redis import RedisClient
from examprep.core.config import settings
from examprep.core.exceptions import register_exception_handlers


@asynccontextmanager
async def lifespan(_app: FastAPI):
    """Startup and shutdown events"""
    print("\n" + "=" * 50)
    print("  Starting Examprep API...")
    print("=" * 50)
    print(f"  Environment: {settings.APP_ENV}")
    print("-" * 50)

    try:
        from sqlalchemy import text
        from examprep.core.database import Base, engine
        Base.metadata.create_all(bind=engine)
        with engine.connect() as conn:
            conn.execute(text("SELECT 1"))
        print(f"  [OK]   Database  ({engine.dialect.name})")
    except Exception as e:
        print(f"  [FAIL] Database  - {e}")

    try:
        RedisClient.get_client()
        print(f"  [OK]   Redis     ({settings.REDIS_HOST}:{settings.REDIS_PORT})")
    except Exception as e:
        print(f"  [FAIL] Redis     - {e} (rate limits disabled)")

    print(f"  [{'OK' if settings.RAZORPAY_KEY_ID else 'WARN'}]   Razorpay  "
          f"({'configured' if settings.RAZORPAY_KEY_ID else 'not configured'})")
    print(f"  [{'OK' if settings.EMAIL_API_URL else 'WARN'}]   Email     "
          f"({'configured' if settings.EMAIL_API_URL else 'not configured'})")

    print("-" * 50)
    print("  Examprep API is ready!")
    print("=" * 50 + "\n")
    yield

    print("\nShutting down Examprep API...")
    RedisClient.close()


is_production = settings.APP_ENV == "production"

app = FastAPI(
    title="Examprep API",
    lifespan=lifespan,
    docs_url=None if is_production else "/docs",
    redoc_url=None if is_production else "/redoc",
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins_list,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

register_exception_handlers(app)


@app.get("/")
def health_check():
    return {"status": True}


app.include_router(otp.router)
app.include_router(auth.router)
app.include_router(batches.router)
app.include_router(enrollment.router)
app.include_router(student.router)
app.include_router(admin.router)

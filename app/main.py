from dotenv import load_dotenv

from fastapi import FastAPI, Depends
from fastapi.middleware.cors import CORSMiddleware

from .chat import routers as chat_router
from .profiles import routers as profiles_router

from .core.dependencies import get_identity
from .core.middleware import logging_middleware
from .models.identity import Identity
from .utils.env_helper import env_list
from .utils.logging_config import setup_logging

load_dotenv()
setup_logging()

app = FastAPI(title="Staff Chat")
app.include_router(chat_router.router, prefix="/chat", tags=["Chat"])
app.include_router(profiles_router.router, prefix="/chat/partners", tags=["Partners"])


origins = env_list(
    "CORS_ORIGINS",
    default=[
        "http://localhost:3000",
        "http://localhost:5173",
    ],
)

app.middleware("http")(logging_middleware)
app.add_middleware(
    CORSMiddleware,
    allow_origins=origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.get("/me")
def who_am_i(me: Identity = Depends(get_identity)):
    return {"user_id": me.user_id, "role": me.role}

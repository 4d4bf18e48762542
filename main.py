import logging

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from livenote.api import CLASSIFIER, LEXICON, router as api_router

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger("livenote")

app = FastAPI(
    title="LiveNote",
    version="0.1.0"
)

# CORS: open for local front-ends; tighten when deployed behind auth
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.get("/ping")
def ping():
    return {"status": "ok"}


@app.on_event("startup")
def startup_event():
    logger.info(
        "LiveNote backend started (medications=%d, ai_classifier=%s)",
        len(LEXICON.medications),
        "on" if CLASSIFIER is not None else "off",
    )


@app.on_event("shutdown")
def shutdown_event():
    logger.info("LiveNote backend stopped")


app.include_router(api_router, prefix="/api")

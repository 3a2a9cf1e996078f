"""
FastAPI entrypoint with a single /api/analyze route.

Consolidates all input parsing:
- Reads the uploaded spreadsheet (first sheet) into row records
- Takes the query and chart type from the form
- Passes an AnalysisRequest to the analyzer and echoes the chart type back
"""

import os
import logging
from functools import lru_cache
from dotenv import load_dotenv

# Load environment variables from .env file
load_dotenv()

# Configure logging
logging.basicConfig(
    level=os.getenv("LOG_LEVEL", "INFO").upper(),
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)

from fastapi import Depends, FastAPI, File, Form, HTTPException, UploadFile
from fastapi.middleware.cors import CORSMiddleware

from .analyzer import MAX_DATASET_CHARS, Analyzer
from .llm_client import GeminiCompletionSource
from .schemas import AnalysisRequest, AnalysisResponse
from .utils import dataframe_to_rows, load_dataframe

app = FastAPI(title="Sheet Insights")
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_methods=["*"],
    allow_headers=["*"],
)


@lru_cache(maxsize=1)
def get_analyzer() -> Analyzer:
    """Analyzer backed by Gemini; settings are read from the environment on first use."""
    return Analyzer(
        GeminiCompletionSource(),
        max_dataset_chars=int(os.getenv("MAX_DATASET_CHARS", MAX_DATASET_CHARS)),
    )


@app.post("/api/analyze", response_model=AnalysisResponse)
async def analyze_endpoint(
    file: UploadFile = File(...),
    query: str = Form(...),
    chartType: str = Form(""),
    analyzer: Analyzer = Depends(get_analyzer),
):
    # 1) Read the upload into row records
    name = getattr(file, "filename", None) or "upload.xlsx"
    try:
        df = load_dataframe(name, file.file)
    except Exception as e:
        logger.error(f"Failed to read upload {name}: {type(e).__name__}: {e}")
        raise HTTPException(status_code=400, detail=f"Error reading uploaded spreadsheet: {e}")

    rows = dataframe_to_rows(df)
    if not rows:
        raise HTTPException(status_code=400, detail="Uploaded spreadsheet contains no rows.")

    # 2) Run the analysis; failures come back as the empty result
    request = AnalysisRequest(dataset=rows, query=query, chart_type=chartType)
    result = await analyzer.analyze(request)

    # 3) Respond with analysis data + chartType
    return AnalysisResponse(
        data=result.data,
        summary=result.summary,
        reasoning=result.reasoning,
        chartType=chartType,
        error=result.error,
    )


def run():
    import uvicorn

    uvicorn.run(
        "sheet_insights.main:app",
        host=os.getenv("HOST", "0.0.0.0"),
        port=int(os.getenv("PORT", "4000")),
    )


if __name__ == "__main__":
    run()

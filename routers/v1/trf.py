# routers/v1/trf.py
import logging
import re
from pathlib import Path

from fastapi import APIRouter, Depends, HTTPException
from fastapi.responses import FileResponse
from sqlalchemy.orm import Session

from config import settings
from database import get_db
from schemas import TrfRequest, TrfOut
from services.layer_progress import load_layers
from services.trf_encoder import encode, write_trf

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/trf", tags=["trf"])

_FILE_NAME = re.compile(r"^LISEC-\d{8}-\d{6}-\d{3}\.TRF$")


@router.post("", response_model=TrfOut)
def generate_trf(payload: TrfRequest, db: Session = Depends(get_db)):
    """
    Build one LISEC file from stored layers (layer_ids) or inline snapshots
    (selected_layers). Layers are not moved; advance them separately.
    """
    if payload.layer_ids:
        rows = {l.id: l for l in load_layers(db, payload.layer_ids)}
        missing = [i for i in payload.layer_ids if i not in rows]
        if missing:
            raise HTTPException(404, f"Layers not found: {missing}")
        layers = [rows[i] for i in payload.layer_ids]
    else:
        layers = payload.selected_layers or []

    doc = encode(layers)
    write_trf(doc, settings.trf_export_dir, settings.trf_log_path)
    logger.info("TRF %s generated for %s layers", doc.file_name, doc.layer_count)

    return TrfOut(
        fileName=doc.file_name,
        downloadUrl=f"/api/v1/trf/{doc.file_name}",
        layersProcessed=doc.layer_count,
        generatedAt=doc.generated_at,
    )


@router.get("/{file_name}")
def download_trf(file_name: str):
    if not _FILE_NAME.match(file_name):
        raise HTTPException(400, "Invalid TRF file name")
    path = Path(settings.trf_export_dir) / file_name
    if not path.is_file():
        raise HTTPException(404, "TRF file not found")
    return FileResponse(path, media_type="text/plain; charset=utf-8", filename=file_name)

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from academic_scheduler.api.deps import get_db
from academic_scheduler.core.config import get_settings
from academic_scheduler.schemas.availability import AvailabilityMergeOut, AvailabilitySlotsIn
from academic_scheduler.services.availability import store_availability_slots

router = APIRouter()


@router.post("/docentes/{docente_id}/disponibilidad/franjas", response_model=AvailabilityMergeOut)
def add_availability_slots(
    docente_id: int,
    payload: AvailabilitySlotsIn,
    db: Session = Depends(get_db),
) -> AvailabilityMergeOut:
    return store_availability_slots(db, teacher_id=docente_id, payload=payload, settings=get_settings())

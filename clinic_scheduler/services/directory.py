import logging

from sqlalchemy import select

from clinic_scheduler.core.errors import require
from clinic_scheduler.database import Database
from clinic_scheduler.domain.participants import Doctor, Participant, Patient, participant_adapter
from clinic_scheduler.models.participant import Participant as ParticipantRow

logger = logging.getLogger(__name__)


def _to_participant(row: ParticipantRow) -> Participant:
    data = {'id': row.id, 'name': row.name, 'role': row.role}
    if row.role == 'doctor':
        data['specialization'] = row.specialization or ''
    return participant_adapter.validate_python(data)


class ParticipantDirectory:
    """Looks up the people that appointments refer to by id."""

    def __init__(self, database: Database) -> None:
        self._database = database

    def register(self, participant: Participant) -> Participant:
        require(participant, 'participant')

        with self._database.session_scope() as db:
            db.merge(
                ParticipantRow(
                    id=participant.id,
                    name=participant.name,
                    role=participant.role,
                    specialization=getattr(participant, 'specialization', None) or None,
                )
            )

        logger.info('Registered %s %s', participant.role, participant.id)
        return participant

    def get(self, participant_id: str) -> Participant | None:
        require(participant_id, 'participant_id')

        with self._database.session_scope() as db:
            row = db.get(ParticipantRow, participant_id)
            return _to_participant(row) if row else None

    def get_doctor(self, participant_id: str) -> Doctor | None:
        participant = self.get(participant_id)
        return participant if isinstance(participant, Doctor) else None

    def get_patient(self, participant_id: str) -> Patient | None:
        participant = self.get(participant_id)
        return participant if isinstance(participant, Patient) else None

    def list_doctors(self) -> list[Doctor]:
        with self._database.session_scope() as db:
            rows = db.scalars(
                select(ParticipantRow)
                .where(ParticipantRow.role == 'doctor')
                .order_by(ParticipantRow.name.asc(), ParticipantRow.id.asc())
            ).all()
            return [_to_participant(row) for row in rows]

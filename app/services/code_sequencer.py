"""
Generación del código público de reclamo: PREFIX-YYYY-NNNNN.

El algoritmo ingenuo (leer el mayor código del año, sumarle uno e insertar)
son dos operaciones separadas: dos envíos simultáneos pueden leer el mismo
máximo y producir el mismo código. Aquí el número sale de un contador por
año (`secuencias_reclamo`) incrementado con un único UPDATE dentro de la
transacción del alta, que retiene el lock de la fila hasta el commit.

La lectura del máximo solo se usa para sembrar el contador la primera vez
que aparece un año. Si dos transacciones siembran el mismo año a la vez,
una choca con la clave primaria del contador y el repositorio reintenta
con una lectura fresca. El UNIQUE de `codigo_reclamo` es la última red.
"""
import re
from typing import Optional

from sqlalchemy import select, update
from sqlalchemy.orm import Session

from app.models.claim import Reclamo, SecuenciaReclamo

SEQUENCE_DIGITS = 5

_SEQUENCE_RE = re.compile(r"-(\d+)$")


def format_code(prefix: str, year: int, number: int) -> str:
    """
    Formatea el código público.

    >>> format_code("CODEPLEX", 2026, 7)
    'CODEPLEX-2026-00007'
    """
    return f"{prefix}-{year}-{number:0{SEQUENCE_DIGITS}d}"


def parse_sequence(code: str) -> Optional[int]:
    """Segmento numérico final del código, o None si no tiene."""
    match = _SEQUENCE_RE.search(code or "")
    if not match:
        return None
    return int(match.group(1))


class CodeSequencer:
    """
    Asigna el siguiente código del año dentro de la transacción del caller.

    Args:
        prefix: Prefijo del código (ej: "CODEPLEX")
    """

    def __init__(self, prefix: str):
        self.prefix = prefix

    def max_existing_sequence(self, session: Session, year: int) -> int:
        """
        Mayor número ya usado en el año según los reclamos existentes.

        Toma el código lexicográficamente mayor con prefijo PREFIX-YYYY-.
        Devuelve 0 si no hay ninguno.
        """
        last_code = session.execute(
            select(Reclamo.codigo_reclamo)
            .where(Reclamo.codigo_reclamo.like(f"{self.prefix}-{year}-%"))
            .order_by(Reclamo.codigo_reclamo.desc())
            .limit(1)
        ).scalar_one_or_none()

        if last_code is None:
            return 0
        return parse_sequence(last_code) or 0

    def next_code(self, session: Session, year: int) -> str:
        """
        Incrementa el contador del año y devuelve el código resultante.

        Debe ejecutarse en la misma transacción que inserta el reclamo: un
        rollback devuelve el número al contador.
        """
        result = session.execute(
            update(SecuenciaReclamo)
            .where(SecuenciaReclamo.anio == year)
            .values(ultimo_numero=SecuenciaReclamo.ultimo_numero + 1)
            .execution_options(synchronize_session=False)
        )

        if result.rowcount == 0:
            number = self.max_existing_sequence(session, year) + 1
            session.add(SecuenciaReclamo(anio=year, ultimo_numero=number))
            # Choca aquí (IntegrityError) si otra transacción sembró el año
            session.flush()
        else:
            number = session.execute(
                select(SecuenciaReclamo.ultimo_numero).where(SecuenciaReclamo.anio == year)
            ).scalar_one()

        return format_code(self.prefix, year, number)

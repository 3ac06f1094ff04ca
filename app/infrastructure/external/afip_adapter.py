# app/infrastructure/external/afip_adapter.py
import logging
import threading
from datetime import date, datetime
from typing import Any, Dict, List, Optional

import requests

import config
from app.domain.exceptions import AuthorityRejected, AuthorityUnavailable
from app.domain.models.authorization import AuthorizationPayload, AuthorizationResult, ServerStatus
from app.domain.ports.credential_provider import CredentialProvider
from app.domain.ports.tax_authority import TaxAuthority

logger = logging.getLogger(__name__)

WSFE_URLS = {
    "PROD": "https://servicios1.afip.gov.ar/wsfev1/service.asmx",
    "DEV": "https://wswhomo.afip.gov.ar/wsfev1/service.asmx",
}

# Códigos de WSFE que indican un ticket de acceso vencido o inválido
TICKET_ERROR_CODES = {600, 601, 602}


class _TicketExpired(AuthorityUnavailable):
    pass


def _as_list(value) -> List[Any]:
    """AFIP devuelve un objeto suelto cuando hay un solo elemento y una lista cuando hay varios."""
    if value is None:
        return []
    if isinstance(value, list):
        return value
    return [value]


def _items(container, outer: str, inner: str) -> List[Dict[str, Any]]:
    """Elementos `container[outer][inner]`, ignorando lo que no tenga forma de objeto."""
    section = container.get(outer) if isinstance(container, dict) else None
    if not isinstance(section, dict):
        return []
    return [item for item in _as_list(section.get(inner)) if isinstance(item, dict)]


def _parse_afip_date(value: Optional[str]) -> Optional[date]:
    if not value:
        return None
    try:
        return datetime.strptime(str(value), "%Y%m%d").date()
    except ValueError as e:
        raise AuthorityUnavailable(f"Fecha con formato inesperado en la respuesta de AFIP: {value!r}") from e


def _as_int(value, field: str) -> int:
    try:
        return int(value)
    except (TypeError, ValueError) as e:
        raise AuthorityUnavailable(f"Valor no numérico en {field} de la respuesta de AFIP: {value!r}") from e


def _error_code(err: Dict[str, Any]) -> int:
    # Un código ilegible no debe ocultar el mensaje de error de AFIP
    try:
        return int(err.get("Code", 0))
    except (TypeError, ValueError):
        return 0


class AfipSdkAdapter(TaxAuthority):
    """
    Cliente de WSFE a través del gateway REST de AFIP SDK.

    Se inicializa de forma diferida en la primera llamada: resuelve los
    certificados, pide el ticket de acceso (token + sign) y lo reutiliza
    hasta que AFIP lo rechace, en cuyo caso se pide uno nuevo una sola vez.
    """

    def __init__(
        self,
        credential_provider: CredentialProvider,
        environment: str = config.AFIP_ENVIRONMENT,
        tax_id: str = config.AFIP_CUIT,
        access_token: Optional[str] = config.AFIP_ACCESS_TOKEN,
        base_url: str = config.AFIP_SDK_BASE_URL,
        timeout_seconds: float = config.AFIP_TIMEOUT_SECONDS,
        http: Optional[requests.Session] = None,
    ):
        self.credential_provider = credential_provider
        self.environment = environment
        self.tax_id = tax_id
        self.access_token = access_token
        self.base_url = base_url.rstrip("/") + "/"
        self.timeout_seconds = timeout_seconds
        self.http = http or requests.Session()

        self._lock = threading.RLock()
        self._credentials = None
        self._ticket: Optional[Dict[str, str]] = None

    # --- Ciclo de vida ---

    def _ensure_ready(self) -> None:
        with self._lock:
            if self._credentials is not None:
                return
            if self.environment == "PROD" and not self.access_token:
                raise AuthorityUnavailable("Falta AFIP_ACCESS_TOKEN para operar en producción")
            self._credentials = self.credential_provider.resolve_pair(self.environment)
            logger.info(f"Cliente AFIP inicializado (entorno={self.environment}, cuit={self.tax_id}).")

    def reset(self) -> None:
        with self._lock:
            self._credentials = None
            self._ticket = None
        logger.info("Cliente AFIP reiniciado.")

    def force_reauthentication(self) -> None:
        self._ensure_ready()
        with self._lock:
            self._ticket = None
            self._ticket = self._request_ticket(force=True)

    def _request_ticket(self, force: bool = False) -> Dict[str, str]:
        cert, key = self._credentials
        body = {
            "environment": self.environment.lower(),
            "tax_id": self.tax_id,
            "wsid": "wsfe",
            "cert": cert,
            "key": key,
            "force_create": force,
        }
        logger.info(f"Solicitando ticket de acceso a AFIP (force={force})...")
        data = self._post("v1/afip/auth", body)
        if not data.get("token") or not data.get("sign"):
            raise AuthorityUnavailable(f"Respuesta de autenticación sin token: {data}")
        logger.info(f"Ticket de acceso obtenido, vence {data.get('expiration')}.")
        return {"token": data["token"], "sign": data["sign"], "expiration": data.get("expiration")}

    def _auth(self) -> Dict[str, Any]:
        with self._lock:
            if self._ticket is None:
                self._ticket = self._request_ticket()
            return {"Token": self._ticket["token"], "Sign": self._ticket["sign"], "Cuit": self.tax_id}

    # --- HTTP ---

    def _headers(self) -> Dict[str, str]:
        headers = {"Content-Type": "application/json"}
        if self.access_token:
            headers["Authorization"] = f"Bearer {self.access_token}"
        return headers

    def _post(self, path: str, body: Dict[str, Any]) -> Dict[str, Any]:
        try:
            response = self.http.post(
                self.base_url + path, json=body, headers=self._headers(), timeout=self.timeout_seconds
            )
        except requests.exceptions.RequestException as e:
            logger.error(f"Error de red al llamar a AFIP ({path}): {e}")
            raise AuthorityUnavailable(f"Error de red con AFIP: {e}") from e

        if response.status_code == 401:
            raise _TicketExpired(f"AFIP rechazó las credenciales: {response.text}")
        if response.status_code >= 500:
            logger.error(f"AFIP respondió {response.status_code} ({path}): {response.text}")
            raise AuthorityUnavailable(f"AFIP respondió {response.status_code}")
        if response.status_code >= 400:
            logger.error(f"AFIP rechazó la solicitud {response.status_code} ({path}): {response.text}")
            raise AuthorityRejected(f"AFIP respondió {response.status_code}: {response.text}")

        try:
            data = response.json()
        except ValueError as e:
            raise AuthorityUnavailable(f"Respuesta inválida de AFIP: {response.text}") from e
        if not isinstance(data, dict):
            logger.error(f"Respuesta de AFIP con formato inesperado ({path}): {response.text}")
            raise AuthorityUnavailable(f"Respuesta inválida de AFIP: {response.text}")
        return data

    def _call_wsfe(self, method: str, params: Optional[Dict[str, Any]] = None, with_auth: bool = True) -> Dict[str, Any]:
        self._ensure_ready()
        for attempt in range(2):
            body_params = dict(params or {})
            if with_auth:
                body_params["Auth"] = self._auth()
            body = {
                "environment": self.environment.lower(),
                "method": method,
                "wsid": "wsfe",
                "url": WSFE_URLS.get(self.environment, WSFE_URLS["DEV"]),
                "params": body_params,
                "soap_v_1_2": True,
            }
            try:
                data = self._post("v1/afip/requests", body)
                result = data.get(f"{method}Result", data)
                if not isinstance(result, dict):
                    raise AuthorityUnavailable(f"Respuesta inválida de AFIP en {method}: {result!r}")
                self._raise_for_ticket_errors(result)
                return result
            except _TicketExpired as e:
                if attempt == 1 or not with_auth:
                    raise AuthorityUnavailable(str(e)) from e
                logger.warning(f"Ticket de acceso vencido en {method}; se solicita uno nuevo y se reintenta.")
                with self._lock:
                    self._ticket = self._request_ticket(force=True)

    @staticmethod
    def _errors(result: Dict[str, Any]) -> List[Dict[str, Any]]:
        return _items(result, "Errors", "Err")

    def _raise_for_ticket_errors(self, result: Dict[str, Any]) -> None:
        for err in self._errors(result):
            if _error_code(err) in TICKET_ERROR_CODES:
                raise _TicketExpired(f"{err.get('Code')}: {err.get('Msg')}")

    # --- Operaciones WSFE ---

    def server_status(self) -> ServerStatus:
        result = self._call_wsfe("FEDummy", with_auth=False)
        return ServerStatus(
            app_server=result.get("AppServer"),
            db_server=result.get("DbServer"),
            auth_server=result.get("AuthServer"),
        )

    def last_voucher_number(self, sales_point: int, type_code: int) -> int:
        result = self._call_wsfe("FECompUltimoAutorizado", {"PtoVta": sales_point, "CbteTipo": type_code})
        errors = self._errors(result)
        if errors:
            raise AuthorityRejected(
                "; ".join(f"{e.get('Code')}: {e.get('Msg')}" for e in errors),
                [_error_code(e) for e in errors],
            )
        return _as_int(result.get("CbteNro") or 0, "CbteNro")

    def authorize(self, payload: AuthorizationPayload) -> AuthorizationResult:
        params = {
            "FeCAEReq": {
                "FeCabReq": {"CantReg": 1, "PtoVta": payload.sales_point, "CbteTipo": payload.type_code},
                "FeDetReq": {"FECAEDetRequest": payload.to_afip()},
            }
        }
        result = self._call_wsfe("FECAESolicitar", params)

        errors = self._errors(result)
        details = _items(result, "FeDetResp", "FECAEDetResponse")
        detail = details[0] if details else {}
        observations = [
            f"{o.get('Code')}: {o.get('Msg')}" for o in _items(detail, "Observaciones", "Obs")
        ]

        if errors or detail.get("Resultado") != "A" or not detail.get("CAE"):
            messages = [f"{e.get('Code')}: {e.get('Msg')}" for e in errors] + observations
            raise AuthorityRejected(
                "; ".join(messages) or f"AFIP no aprobó el comprobante: {detail.get('Resultado')}",
                [_error_code(e) for e in errors],
            )

        return AuthorizationResult(
            code=str(detail["CAE"]),
            expiry=_parse_afip_date(detail.get("CAEFchVto")),
            voucher_number=_as_int(detail.get("CbteDesde") or payload.voucher_from, "CbteDesde"),
            sales_point=payload.sales_point,
            observations=observations,
        )

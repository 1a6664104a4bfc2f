"""Dados e dublês reutilizáveis para os cenários de teste."""
import hashlib
import hmac
import json
import time
from datetime import date

from dental_saas.models.auth_user import AuthUser
from dental_saas.models.company import Company
from dental_saas.models.dentist import Dentist
from dental_saas.models.patient import Patient
from dental_saas.services.passwords import hash_password
from dental_saas.services.payment_gateway import StripeGateway
from dental_saas.services.sessions import create_session

WEBHOOK_SECRET = "whsec_test"

PATIENT_REGISTRATION_PAYLOAD = {
    "name": "Maria Oliveira",
    "cpf": "111.444.777-35",
    "email": "Maria@Example.com",
    "phone": "(11) 98888-7777",
    "gender": "F",
    "birthDate": "1988-03-02",
    "street": "Av. Paulista, 1000",
    "zipCode": "01310-100",
    "city": "São Paulo",
    "state": "sp",
}

CHECKOUT_COMPLETE_PAYLOAD = {
    "sessionId": "cs_test_paid",
    "accountData": {"email": "dono@clinicax.com", "password": "senha-forte", "name": "Dr. Carlos"},
    "companyData": {"name": "Clínica X", "slug": "clinica-x"},
    "selectedPlan": {"id": 1},
    "dentistCount": 2,
}



class FakeStorageClient:
    def __init__(self):
        self.objects = {}
        self.deleted = []
        self.fail_delete = False

    def upload_fileobj(self, fileobj, bucket, key, ExtraArgs=None):
        self.objects[key] = {"body": fileobj.read(), "bucket": bucket, "extra": ExtraArgs}

    def delete_objects(self, Bucket, Delete):
        from botocore.exceptions import ClientError

        if self.fail_delete:
            raise ClientError({"Error": {"Code": "500", "Message": "boom"}}, "DeleteObjects")
        for entry in Delete["Objects"]:
            self.deleted.append(entry["Key"])
            self.objects.pop(entry["Key"], None)

    def generate_presigned_url(self, operation, Params, ExpiresIn):
        return f"https://storage.test/{Params['Bucket']}/{Params['Key']}?op={operation}&expires={ExpiresIn}"


class FakeGateway(StripeGateway):
    """Verificação de assinatura real; chamadas de API ficam em memória."""

    def __init__(self):
        super().__init__(
            api_key="sk_test_fake",
            webhook_secret=WEBHOOK_SECRET,
            portal_configuration_id=None,
            client=object(),
        )
        self.subscriptions = {}
        self.checkout_sessions = {}
        self.calls = []

    def create_checkout_session(self, params):
        self.calls.append(("create_checkout_session", params))
        return {"id": "cs_test_new", "url": "https://checkout.stripe.test/cs_test_new"}

    def retrieve_checkout_session(self, session_id, expand=None):
        self.calls.append(("retrieve_checkout_session", session_id))
        return self.checkout_sessions[session_id]

    def retrieve_subscription(self, subscription_id, expand=None):
        self.calls.append(("retrieve_subscription", subscription_id))
        return self.subscriptions[subscription_id]

    def update_subscription(self, subscription_id, params):
        self.calls.append(("update_subscription", subscription_id, params))
        remote = self.subscriptions.setdefault(subscription_id, {"id": subscription_id})
        remote.setdefault("metadata", {}).update(params.get("metadata", {}))
        return remote

    def iter_subscriptions(self, status="all"):
        return iter(list(self.subscriptions.values()))

    def update_customer(self, customer_id, params):
        self.calls.append(("update_customer", customer_id, params))
        return {"id": customer_id, **params}

    def create_portal_session(self, customer_id, return_url):
        self.calls.append(("create_portal_session", customer_id, return_url))
        return {"url": f"https://billing.stripe.test/{customer_id}"}

    def list_invoices(self, subscription_id, limit=10):
        return {"data": []}

    def calls_named(self, name):
        return [call for call in self.calls if call[0] == name]


def remote_subscription(subscription_id="sub_123", status="active", company_id=None, quantity=2, price_id="price_basic"):
    metadata = {"company_id": company_id} if company_id else {}
    return {
        "id": subscription_id,
        "status": status,
        "customer": "cus_123",
        "metadata": metadata,
        "trial_end": None,
        "items": {
            "data": [
                {
                    "quantity": quantity,
                    "price": {"id": price_id},
                    "current_period_start": 1_700_000_000,
                    "current_period_end": 1_702_592_000,
                }
            ]
        },
    }


def sign_webhook(payload: bytes, secret: str = WEBHOOK_SECRET) -> str:
    timestamp = int(time.time())
    signed = f"{timestamp}.".encode() + payload
    signature = hmac.new(secret.encode(), signed, hashlib.sha256).hexdigest()
    return f"t={timestamp},v1={signature}"


def webhook_body(event: dict) -> bytes:
    return json.dumps(event).encode()


def make_company(db, slug="clinica-sorriso", name="Clínica Sorriso", is_active=True) -> Company:
    company = Company(name=name, slug=slug, is_active=is_active)
    db.add(company)
    db.commit()
    return company


def make_dentist(db, company, email="dentista@example.com", name="Dra. Ana", is_admin=False, password="segredo123") -> Dentist:
    user = AuthUser(email=email, password_hash=hash_password(password), email_confirmed=True)
    db.add(user)
    db.flush()
    dentist = Dentist(id=user.id, company_id=company.id, name=name, email=email, is_admin=is_admin)
    db.add(dentist)
    db.commit()
    return dentist


def make_patient(db, company, cpf="11144477735", email="paciente@example.com", name="João Silva") -> Patient:
    patient = Patient(
        company_id=company.id,
        cpf=cpf,
        name=name,
        email=email,
        phone="11999990000",
        birth_date=date(1990, 5, 17),
        street="Rua das Flores, 10",
        zip_code="01001000",
        city="São Paulo",
        state="SP",
        has_insurance=False,
    )
    db.add(patient)
    db.commit()
    return patient


def auth_headers(dentist) -> dict:
    token = create_session({"user_id": dentist.id, "email": dentist.email})
    return {"Authorization": f"Bearer {token}"}

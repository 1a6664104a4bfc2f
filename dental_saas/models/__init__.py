from dental_saas.models.company import Company
from dental_saas.models.auth_user import AuthUser
from dental_saas.models.dentist import Dentist
from dental_saas.models.patient import Patient
from dental_saas.models.treatment import Treatment, TreatmentStatus
from dental_saas.models.anamnesis import Anamnesis
from dental_saas.models.treatment_item import TreatmentItem
from dental_saas.models.treatment_payment import PaymentMethod, TreatmentPayment
from dental_saas.models.treatment_file import TreatmentFile
from dental_saas.models.subscription_plan import SubscriptionPlan
from dental_saas.models.subscription import Subscription, SubscriptionStatus
from dental_saas.models.processed_webhook_event import ProcessedWebhookEvent
from dental_saas.models.admin_audit_log import AdminAuditLog

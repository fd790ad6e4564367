from veracodetui.core.models import APICredentials, Principal
from veracodetui.services.base import BaseService

PRINCIPAL_PATH = "/api/authn/v2/principal"
API_CREDENTIALS_PATH = "/api/authn/v2/api_credentials"


class IdentityService(BaseService):

    name = "identity"

    def get_principal(self) -> Principal:
        """The user the API credentials belong to."""
        return self.parse(self.get(PRINCIPAL_PATH), "principal", Principal.from_dict)

    def get_api_credentials(self) -> APICredentials:
        """Metadata of the current API credentials; the secret is never returned."""
        body = self.get(API_CREDENTIALS_PATH)
        return self.parse(body, "api credentials", APICredentials.from_dict)

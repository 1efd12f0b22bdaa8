"""Catalog of API management resource kinds.

Every kind the extractor knows about is declared here exactly once.  The
catalog is closed: ALL_KINDS is what the default ResourceGraph is built from.
"""

from __future__ import annotations

from apimextract.models.resources import Composite, Directory, DtoShape, ResourceKind, ResourceName

_POLICY_DTO = DtoShape(properties=("description", "format", "value"))


def _names(*names: str) -> frozenset[ResourceName]:
    return frozenset(ResourceName(name) for name in names)


def _policy_kind(key: str, label: str, parent: ResourceKind | None = None) -> ResourceKind:
    return ResourceKind(
        key=key,
        singular="policy",
        plural="policies",
        label=label,
        collection_uri_path="policies",
        dto=_POLICY_DTO,
        is_policy=True,
        parent=parent,
    )


def _link_kind(
    key: str,
    label: str,
    primary: ResourceKind,
    secondary: ResourceKind,
    link_property: str,
    information_file: str,
) -> ResourceKind:
    assert secondary.directory is not None
    return ResourceKind(
        key=key,
        singular=secondary.singular,
        plural=secondary.plural,
        label=label,
        collection_uri_path=f"{secondary.singular}Links",
        directory=secondary.directory,
        dto=DtoShape(properties=(link_property,), references=(link_property,)),
        information_file=information_file,
        composite=Composite(primary=primary, secondary=secondary, link_property=link_property),
    )


# ---------------------------------------------------------------------------
# Top-level kinds
# ---------------------------------------------------------------------------

NAMED_VALUE = ResourceKind(
    key="named_value",
    singular="named value",
    plural="named values",
    label="named value",
    collection_uri_path="namedValues",
    directory=Directory("named values"),
    dto=DtoShape(properties=("displayName", "keyVault", "secret", "tags", "value")),
    information_file="namedValueInformation.json",
)

TAG = ResourceKind(
    key="tag",
    singular="tag",
    plural="tags",
    label="tag",
    collection_uri_path="tags",
    directory=Directory("tags"),
    dto=DtoShape(properties=("displayName",)),
    information_file="tagInformation.json",
)

GATEWAY = ResourceKind(
    key="gateway",
    singular="gateway",
    plural="gateways",
    label="gateway",
    collection_uri_path="gateways",
    directory=Directory("gateways"),
    dto=DtoShape(properties=("description", "locationData")),
    information_file="gatewayInformation.json",
)

VERSION_SET = ResourceKind(
    key="version_set",
    singular="version set",
    plural="version sets",
    label="version set",
    collection_uri_path="apiVersionSets",
    directory=Directory("version sets"),
    dto=DtoShape(
        properties=("displayName", "description", "versioningScheme", "versionQueryName", "versionHeaderName")
    ),
    information_file="versionSetInformation.json",
)

BACKEND = ResourceKind(
    key="backend",
    singular="backend",
    plural="backends",
    label="backend",
    collection_uri_path="backends",
    directory=Directory("backends"),
    dto=DtoShape(properties=("description", "protocol", "title", "url")),
    information_file="backendInformation.json",
)

LOGGER = ResourceKind(
    key="logger",
    singular="logger",
    plural="loggers",
    label="logger",
    collection_uri_path="loggers",
    directory=Directory("loggers"),
    dto=DtoShape(properties=("loggerType", "credentials", "description", "isBuffered", "resourceId")),
    information_file="loggerInformation.json",
)

_DIAGNOSTIC_DTO = DtoShape(
    properties=(
        "loggerId",
        "alwaysLog",
        "backend",
        "frontend",
        "httpCorrelationProtocol",
        "logClientIp",
        "metrics",
        "operationNameFormat",
        "sampling",
        "verbosity",
    ),
    references=("loggerId",),
)

DIAGNOSTIC = ResourceKind(
    key="diagnostic",
    singular="diagnostic",
    plural="diagnostics",
    label="diagnostic",
    collection_uri_path="diagnostics",
    directory=Directory("diagnostics"),
    dto=_DIAGNOSTIC_DTO,
    information_file="diagnosticInformation.json",
    depends_on=(LOGGER,),
)

POLICY_FRAGMENT = ResourceKind(
    key="policy_fragment",
    singular="policy fragment",
    plural="policy fragments",
    label="policy fragment",
    collection_uri_path="policyFragments",
    directory=Directory("policy fragments"),
    dto=DtoShape(properties=("description", "format", "value"), information_file_excludes=("format", "value")),
    information_file="policyFragmentInformation.json",
    is_policy=True,
)

SERVICE_POLICY = ResourceKind(
    key="service_policy",
    singular="service policy",
    plural="service policies",
    label="service policy",
    collection_uri_path="policies",
    dto=_POLICY_DTO,
    is_policy=True,
    depends_on=(NAMED_VALUE, POLICY_FRAGMENT, BACKEND),
)

PRODUCT = ResourceKind(
    key="product",
    singular="product",
    plural="products",
    label="product",
    collection_uri_path="products",
    directory=Directory("products"),
    dto=DtoShape(
        properties=(
            "displayName",
            "description",
            "approvalRequired",
            "state",
            "subscriptionRequired",
            "subscriptionsLimit",
            "terms",
        )
    ),
    information_file="productInformation.json",
)

GROUP = ResourceKind(
    key="group",
    singular="group",
    plural="groups",
    label="group",
    collection_uri_path="groups",
    directory=Directory("groups"),
    dto=DtoShape(properties=("displayName", "description", "externalId", "type")),
    information_file="groupInformation.json",
    protected_names=_names("administrators", "developers", "guests"),
)

API = ResourceKind(
    key="api",
    singular="api",
    plural="apis",
    label="API",
    collection_uri_path="apis",
    directory=Directory("apis"),
    dto=DtoShape(
        properties=(
            "path",
            "apiRevision",
            "apiRevisionDescription",
            "apiVersion",
            "apiVersionDescription",
            "apiVersionSetId",
            "authenticationSettings",
            "contact",
            "description",
            "isCurrent",
            "license",
            "apiType",
            "displayName",
            "format",
            "protocols",
            "serviceUrl",
            "sourceApiId",
            "translateRequiredQueryParameters",
            "value",
            "wsdlSelector",
            "subscriptionKeyParameterNames",
            "subscriptionRequired",
            "termsOfServiceUrl",
            "type",
        ),
        references=("apiVersionSetId",),
    ),
    information_file="apiInformation.json",
    supports_revisions=True,
    depends_on=(VERSION_SET,),
)

SUBSCRIPTION = ResourceKind(
    key="subscription",
    singular="subscription",
    plural="subscriptions",
    label="subscription",
    collection_uri_path="subscriptions",
    directory=Directory("subscriptions"),
    dto=DtoShape(
        properties=("displayName", "scope", "allowTracing", "ownerId", "primaryKey", "secondaryKey", "state"),
        references=("scope",),
    ),
    information_file="subscriptionInformation.json",
    protected_names=_names("master"),
    depends_on=(PRODUCT, API),
)

# ---------------------------------------------------------------------------
# Children
# ---------------------------------------------------------------------------

API_POLICY = _policy_kind("api_policy", "API policy", parent=API)

API_DIAGNOSTIC = ResourceKind(
    key="api_diagnostic",
    singular="diagnostic",
    plural="diagnostics",
    label="API diagnostic",
    collection_uri_path="diagnostics",
    directory=Directory("diagnostics"),
    dto=_DIAGNOSTIC_DTO,
    information_file="diagnosticInformation.json",
    parent=API,
    depends_on=(LOGGER,),
)

API_RELEASE = ResourceKind(
    key="api_release",
    singular="release",
    plural="releases",
    label="API release",
    collection_uri_path="releases",
    directory=Directory("releases"),
    dto=DtoShape(properties=("apiId", "notes"), references=("apiId",)),
    information_file="apiReleaseInformation.json",
    parent=API,
)

API_OPERATION = ResourceKind(
    key="api_operation",
    singular="operation",
    plural="operations",
    label="API operation",
    collection_uri_path="operations",
    directory=Directory("operations"),
    parent=API,
)

API_OPERATION_POLICY = _policy_kind("api_operation_policy", "API operation policy", parent=API_OPERATION)

PRODUCT_POLICY = _policy_kind("product_policy", "product policy", parent=PRODUCT)

# ---------------------------------------------------------------------------
# Composites
# ---------------------------------------------------------------------------

PRODUCT_API = _link_kind("product_api", "product API", PRODUCT, API, "apiId", "productApiInformation.json")
PRODUCT_GROUP = _link_kind("product_group", "product group", PRODUCT, GROUP, "groupId", "productGroupInformation.json")
TAG_API = _link_kind("tag_api", "tag API", TAG, API, "apiId", "tagApiInformation.json")
TAG_PRODUCT = _link_kind("tag_product", "tag product", TAG, PRODUCT, "productId", "tagProductInformation.json")

GATEWAY_API = ResourceKind(
    key="gateway_api",
    singular=API.singular,
    plural=API.plural,
    label="gateway API",
    collection_uri_path=API.collection_uri_path,
    directory=API.directory,
    dto=DtoShape(properties=()),
    information_file="gatewayApiInformation.json",
    composite=Composite(primary=GATEWAY, secondary=API),
)

ALL_KINDS: tuple[ResourceKind, ...] = (
    NAMED_VALUE,
    TAG,
    GATEWAY,
    VERSION_SET,
    BACKEND,
    LOGGER,
    DIAGNOSTIC,
    POLICY_FRAGMENT,
    SERVICE_POLICY,
    PRODUCT,
    GROUP,
    API,
    SUBSCRIPTION,
    API_POLICY,
    API_DIAGNOSTIC,
    API_RELEASE,
    API_OPERATION,
    API_OPERATION_POLICY,
    PRODUCT_POLICY,
    PRODUCT_API,
    PRODUCT_GROUP,
    TAG_API,
    TAG_PRODUCT,
    GATEWAY_API,
)

"""Built-in rule functions, keyed by the name rules dispatch on."""

from __future__ import annotations

from typing import Any

from oaslint.functions.base import (
    RuleFunction,
    RuleFunctionContext,
    RuleFunctionSchema,
    as_rule_function,
)
from oaslint.functions.core import (
    alphabetical,
    blank,
    casing,
    enumeration,
    length,
    pattern,
    presence,
    schema,
)
from oaslint.functions.openapi import (
    components,
    descriptions,
    examples,
    extensions,
    operations,
    paths,
    schema_style,
    schema_types,
    servers,
    swagger,
    tags,
)
from oaslint.functions.owasp import auth, hosts, params, responses, schemas, security

# Registry of all available functions
BUILTIN_FUNCTIONS: dict[str, RuleFunction] = {
    # Core functions
    "truthy": presence.Truthy(),
    "falsy": presence.Falsy(),
    "defined": presence.Defined(),
    "undefined": presence.Undefined(),
    "xor": presence.Xor(),
    "enumeration": enumeration.Enumeration(),
    "alphabetical": alphabetical.Alphabetical(),
    "pattern": pattern.Pattern(),
    "length": length.Length(),
    "schema": schema.Schema(),
    "oasSchema": schema.Schema(),
    "casing": casing.Casing(),
    "blank": blank.Blank(),

    # OpenAPI operations and paths
    "oasOpSuccessResponse": operations.SuccessResponse(),
    "oasOpErrorResponse": operations.OperationErrorResponse(),
    "postResponseSuccess": operations.PostResponseSuccess(),
    "oasOpId": operations.OperationId(),
    "oasOpIdUnique": operations.UniqueOperationId(),
    "oasOpParams": operations.OperationParameters(),
    "oasOpSingleTag": operations.OperationSingleTag(),
    "oasOpTags": operations.OperationTags(),
    "noRequestBody": operations.NoRequestBody(),
    "oasPathParam": paths.PathParameters(),
    "noAmbiguousPaths": paths.AmbiguousPaths(),
    "duplicatePaths": paths.DuplicatePaths(),
    "noVerbsInPath": paths.VerbsInPath(),
    "pathsKebabCase": paths.PathsKebabCase(),
    "pathItemReferences": paths.PathItemReferences(),

    # OpenAPI tags and descriptions
    "oasTagDefined": tags.TagDefined(),
    "oasTagDescription": tags.TagDescription(),
    "oasDescriptions": descriptions.OperationDescription(),
    "oasComponentDescriptions": descriptions.ComponentDescription(),
    "oasParamDescriptions": descriptions.ParameterDescription(),
    "oasDescriptionDuplication": descriptions.DescriptionDuplication(),
    "noEvalDescriptions": descriptions.NoEvalInDescriptions(),

    # OpenAPI components and schemas
    "typedEnum": components.TypedEnum(),
    "duplicatedEnum": components.DuplicatedEnum(),
    "refSiblings": components.RefSiblings(),
    "oasUnusedComponent": components.UnusedComponent(),
    "oasPolymorphicAnyOf": components.PolymorphicAnyOf(),
    "oasPolymorphicOneOf": components.PolymorphicOneOf(),
    "oasSchemaCheck": schema_types.SchemaTypeCheck(),
    "oasMissingType": schema_style.MissingType(),
    "oasNullableEnum": schema_style.NullableEnum(),
    "oasUnnecessaryCombinator": schema_style.UnnecessaryCombinator(),
    "oasCamelCaseProperties": schema_style.CamelCaseProperties(),
    "oasDiscriminator": swagger.Discriminator(),
    "oasOpFormDataConsumeCheck": swagger.FormDataConsumeCheck(),

    # OpenAPI examples
    "oasExampleSchema": examples.ExampleSchema(),
    "oasExampleMissing": examples.ExampleMissing(),
    "oasExampleExternalCheck": examples.ExampleExternalCheck(),

    # OpenAPI extensions
    "oasMigrateZallyIgnore": extensions.MigrateZallyIgnore(),

    # OpenAPI servers and security
    "oasAPIServers": servers.APIServers(),
    "oasOpSecurityDefined": servers.OperationSecurityDefined(),
    "oas2OpSecurityDefined": servers.OperationSecurityDefined(),
    "infoLicenseURLSPDX": servers.InfoLicenseURLSPDX(),

    # OWASP
    "owaspNoNumericIds": params.NoNumericIds(),
    "owaspNoCredentialsInUrl": params.NoCredentialsInUrl(),
    "owaspNoApiKeyInUrl": auth.NoApiKeyInUrl(),
    "owaspNoBasicAuth": auth.NoBasicAuth(),
    "owaspAuthInsecureSchemes": auth.AuthInsecureSchemes(),
    "owaspJWTBestPractice": auth.JWTBestPractice(),
    "owaspCheckSecurity": security.CheckSecurity(),
    "owaspCheckErrorResponse": responses.CheckErrorResponse(),
    "owaspDefineErrorDefinition": responses.DefineErrorDefinition(),
    "owaspHeaderDefinition": responses.HeaderDefinition(),
    "owaspRatelimitRetryAfter": responses.RatelimitRetryAfter(),
    "owaspHostsHttps": hosts.HostsHttps(),
    "owaspIntegerLimit": schemas.IntegerLimit(),
    "owaspIntegerFormat": schemas.IntegerFormat(),
    "owaspArrayLimit": schemas.ArrayLimit(),
    "owaspStringLimit": schemas.StringLimit(),
    "owaspStringRestricted": schemas.StringRestricted(),
    "owaspNoAdditionalProperties": schemas.NoAdditionalProperties(),
    "owaspAdditionalPropertiesConstrained": schemas.AdditionalPropertiesConstrained(),
}


def build_registry(custom: dict[str, Any] | None = None) -> dict[str, RuleFunction]:
    """Built-in functions overlaid with *custom* ones; custom names win."""
    registry = dict(BUILTIN_FUNCTIONS)
    for name, candidate in (custom or {}).items():
        registry[name] = as_rule_function(name, candidate)
    return registry


# ---------------------------------------------------------------------------
# Option validation
# ---------------------------------------------------------------------------


def _count_options(options: dict[str, Any]) -> int:
    """Count option values; comma separated strings and lists count per item."""
    count = 0
    for value in options.values():
        if isinstance(value, str):
            count += len(value.split(",")) if "," in value else 1
        elif isinstance(value, (bool, int, float)):
            count += 1
        elif isinstance(value, (list, tuple)):
            count += len(value)
    return count


def validate_function_options(
    fn: RuleFunction, ctx: RuleFunctionContext
) -> tuple[bool, list[str]]:
    """Check *ctx* against what *fn* declares in its schema.

    Returns ``(valid, errors)``.  A missing ``field`` on a function that
    requires one is reported but does not make the context invalid, the
    function then simply finds nothing to check.
    """
    spec: RuleFunctionSchema = fn.schema()
    options = ctx.options if isinstance(ctx.options, dict) else {}
    errors: list[str] = []
    valid = True
    count = _count_options(options)

    if spec.min_properties > 0 and count < spec.min_properties:
        valid = False
        errors.append(
            f"{spec.error_message}: minimum property number not met ({spec.min_properties})"
        )
    if spec.max_properties > 0 and count > spec.max_properties:
        valid = False
        errors.append(
            f"{spec.error_message}: maximum number ({spec.max_properties}) of properties "
            f"exceeded. '{count}' provided."
        )
    if spec.requires_field and not ctx.field:
        errors.append(f"'{spec.name}' requires a 'field' value to be set")

    for name in spec.required:
        if name not in options:
            valid = False
            errors.append(
                f"{spec.error_message}: missing required property: {name} "
                f"({spec.property_description(name)})"
            )
    return valid, errors


__all__ = [
    "BUILTIN_FUNCTIONS",
    "RuleFunction",
    "RuleFunctionContext",
    "RuleFunctionSchema",
    "build_registry",
    "validate_function_options",
]

"""Behaviour of the built-in OWASP rules."""

from oaslint.motor import RuleSetExecution, apply_rules
from oaslint.rulesets import compose_ruleset


def lint(spec, *rule_ids):
    enabled = "".join(f"  {rule_id}: true\n" for rule_id in rule_ids)
    ruleset = compose_ruleset(f'extends: [[spectral:oas, "off"]]\nrules:\n{enabled}')
    out = apply_rules(RuleSetExecution(rule_set=ruleset, spec=spec))
    assert out.errors == []
    return out.results


HEADER = """\
openapi: "3.0.3"
info:
  title: Pets
  version: "1"
"""


class TestAuthRules:
    SCHEMES = HEADER + """\
paths: {}
components:
  securitySchemes:
    basic: {type: http, scheme: basic}
    bearer: {type: http, scheme: bearer, bearerFormat: JWT}
    documented:
      type: http
      scheme: bearer
      bearerFormat: JWT
      description: Tokens follow RFC8725.
    queryKey: {type: apiKey, name: key, in: query}
    headerKey: {type: apiKey, name: X-Key, in: header}
"""

    def test_no_http_basic(self):
        results = lint(self.SCHEMES, "owasp-no-http-basic")
        assert [r.path for r in results] == ["$.components.securitySchemes['basic'].scheme"]

    def test_jwt_best_practices(self):
        results = lint(self.SCHEMES, "owasp-jwt-best-practices")
        assert [r.path for r in results] == ["$.components.securitySchemes['bearer'].description"]

    def test_api_key_in_url(self):
        results = lint(self.SCHEMES, "owasp-no-api-keys-in-url")
        assert len(results) == 1
        assert "(`query`)" in results[0].message


class TestParameterRules:
    def test_numeric_ids(self):
        spec = HEADER + """\
paths:
  /pets/{petId}:
    get:
      parameters:
        - {name: petId, in: path, required: true, schema: {type: integer}}
        - {name: limit, in: query, schema: {type: integer}}
      responses: {"200": {description: ok}}
"""
        results = lint(spec, "owasp-no-numeric-ids")
        assert len(results) == 1
        assert results[0].path.endswith(".parameters[0].schema.type")

    def test_credentials_in_url(self):
        spec = HEADER + """\
paths:
  /pets:
    get:
      parameters:
        - {name: access_token, in: query, schema: {type: string}}
        - {name: password, in: header, schema: {type: string}}
      responses: {"200": {description: ok}}
"""
        results = lint(spec, "owasp-no-credentials-in-url")
        assert len(results) == 1
        assert "`access_token`" in results[0].message


class TestResponseRules:
    def test_missing_401(self):
        spec = HEADER + """\
paths:
  /pets:
    get:
      responses: {"200": {description: ok}}
"""
        results = lint(spec, "owasp-define-error-responses-401")
        assert [r.message for r in results] == ["missing response code '401' for 'GET'"]
        assert results[0].path == "$.paths['/pets'].get.responses"

    def test_401_without_schema(self):
        spec = HEADER + """\
paths:
  /pets:
    get:
      responses:
        "401": {description: denied}
"""
        results = lint(spec, "owasp-define-error-responses-401")
        assert [r.message for r in results] == ["missing schema for '401' response on 'GET'"]

    def test_401_with_schema(self):
        spec = HEADER + """\
paths:
  /pets:
    get:
      responses:
        "401":
          description: denied
          content:
            application/json:
              schema: {type: object}
"""
        assert lint(spec, "owasp-define-error-responses-401") == []

    def test_validation_error_codes(self):
        spec = HEADER + """\
paths:
  /pets:
    get:
      responses: {"200": {description: ok}}
    post:
      responses: {"4XX": {description: bad}}
"""
        results = lint(spec, "owasp-define-error-validation")
        assert [r.path for r in results] == ["$.paths['/pets'].get.responses"]

    def test_retry_after(self):
        spec = HEADER + """\
paths:
  /pets:
    get:
      responses:
        "429": {description: slow down}
    post:
      responses:
        "429":
          description: slow down
          headers:
            Retry-After: {schema: {type: integer}}
"""
        results = lint(spec, "owasp-rate-limit-retry-after")
        assert [r.path for r in results] == ["$.paths['/pets'].get.responses['429']"]

    def test_rate_limit_headers(self):
        spec = HEADER + """\
paths:
  /pets:
    get:
      responses:
        "200":
          description: ok
          headers:
            RateLimit-Limit: {schema: {type: integer}}
            RateLimit-Reset: {schema: {type: integer}}
        "404": {description: missing}
        "500": {description: broken}
"""
        results = lint(spec, "owasp-rate-limit")
        assert len(results) == 1
        assert "Response with code 404" in results[0].message


class TestSchemaRules:
    SPEC = HEADER + """\
paths:
  /pets:
    post:
      requestBody:
        content:
          application/json:
            schema:
              type: object
              additionalProperties: true
              properties:
                name: {type: string}
                tags: {type: array, items: {type: string, maxLength: 20}}
      responses:
        "200":
          description: ok
          content:
            application/json:
              schema:
                type: object
                properties:
                  bio: {type: string}
                  photos: {type: array}
"""

    def test_string_limit_only_for_requests(self):
        results = lint(self.SPEC, "owasp-string-limit")
        assert len(results) == 1
        assert results[0].path.endswith(".properties['name']")

    def test_array_limit_only_for_requests(self):
        results = lint(self.SPEC, "owasp-array-limit")
        assert len(results) == 1
        assert results[0].path.endswith(".properties['tags']")

    def test_additional_properties(self):
        assert len(lint(self.SPEC, "owasp-no-additionalProperties")) == 1
        assert len(lint(self.SPEC, "owasp-constrained-additionalProperties")) == 1

    def test_integer_bounds(self):
        spec = HEADER + """\
paths: {}
components:
  schemas:
    Bounded: {type: integer, format: int32, minimum: 0, maximum: 10}
    Exclusive: {type: integer, format: int64, minimum: 0, exclusiveMaximum: 10}
    Open: {type: integer, minimum: 0}
"""
        limit = lint(spec, "owasp-integer-limit")
        assert [r.path for r in limit] == ["$.components.schemas['Open']"]
        fmt = lint(spec, "owasp-integer-format")
        assert [r.path for r in fmt] == ["$.components.schemas['Open']"]


class TestHosts:
    def test_oas3_servers(self):
        spec = HEADER + """\
servers:
  - url: https://api.example.com
  - url: http://api.example.com
paths: {}
"""
        results = lint(spec, "owasp-security-hosts-https-oas3")
        assert [r.path for r in results] == ["$.servers[1].url"]

    def test_swagger_schemes(self):
        spec = """\
swagger: "2.0"
info: {title: Pets, version: "1"}
schemes: [https, http]
paths: {}
"""
        results = lint(spec, "owasp-security-hosts-https-oas3")
        assert [r.path for r in results] == ["$.schemes[1]"]

"""
Unit tests for the default pipeline steps and build_safe_defaults.
"""

import base64
import json
from typing import Optional

import pytest
from aws_lambda_powertools.event_handler import CORSConfig
from pydantic import BaseModel

from handler_kit.handlers.utils.errors import BusinessError, ValidationError
from handler_kit.middleware.default_steps import (
    build_safe_defaults,
    make_content_negotiation,
    make_cors,
    make_error_handler,
    make_event_validator,
    make_head,
    make_json_body_parser,
    make_multipart_detector,
    make_response_validator,
    make_serializer,
    make_shape,
)
from handler_kit.middleware.transform_utils import Phase
from handler_kit.models.options import StackOptions
from handler_kit.models.record import InvocationRecord


class What(BaseModel):
    what: Optional[str] = None


class Count(BaseModel):
    count: int


def http_event(method='POST', body=None, headers=None, **extra):
    event = {
        'httpMethod': method,
        'headers': headers if headers is not None else {'Content-Type': 'application/json'},
        'body': body,
        'requestContext': {'identity': {}},
    }
    event.update(extra)
    return event


class TestBuildSafeDefaults:
    """Test cases for the baseline pipeline."""

    def test_http_with_schemas(self):
        phases = build_safe_defaults('application/json', What, What)

        assert phases.ids(Phase.BEFORE) == [
            'head', 'header-normalizer', 'content-negotiation', 'multipart', 'json-body-parser', 'zod-before',
        ]
        assert phases.ids(Phase.AFTER) == ['zod-after', 'shape', 'cors', 'serializer']
        assert phases.ids(Phase.ON_ERROR) == ['error-handler']

    def test_http_without_schemas(self):
        phases = build_safe_defaults('application/json')

        assert 'zod-before' not in phases.ids(Phase.BEFORE)
        assert phases.ids(Phase.AFTER) == ['shape', 'cors', 'serializer']

    def test_security_context_step_when_declared(self):
        phases = build_safe_defaults('application/json', What, security_context='private')

        before = phases.ids(Phase.BEFORE)
        assert before.index('security-context') < before.index('zod-before')

    def test_non_http_only_validates_and_maps_errors(self):
        phases = build_safe_defaults('application/json', What, What, 'my', http=False)

        assert phases.ids(Phase.BEFORE) == ['zod-before']
        assert phases.ids(Phase.AFTER) == ['zod-after']
        assert phases.ids(Phase.ON_ERROR) == ['error-handler']

    def test_on_error_is_never_empty(self):
        for http in (True, False):
            assert build_safe_defaults('text/plain', http=http).ids(Phase.ON_ERROR) == ['error-handler']

    def test_steps_are_bound_to_their_phase(self):
        phases = build_safe_defaults('application/json', What, What)

        for phase, steps in phases.items():
            assert all(step.phase is phase for step in steps)


class TestBeforeSteps:
    """Test cases for request-side steps."""

    def test_head_short_circuits(self):
        record = InvocationRecord(event=http_event(method='HEAD'))

        make_head('application/json')(record)

        assert record.responded and record.short_circuited
        assert record.response['statusCode'] == 200
        assert record.response['body'] == '{}'

    def test_head_ignores_other_methods(self):
        record = InvocationRecord(event=http_event(method='GET'))

        make_head('application/json')(record)

        assert not record.responded

    def test_json_body_is_parsed(self):
        record = InvocationRecord(event=http_event(body='{"what": "x"}'))

        make_json_body_parser()(record)

        assert record.internal['parsed_body'] == {'what': 'x'}
        assert record.event['body'] == {'what': 'x'}

    def test_base64_body_is_decoded(self):
        body = base64.b64encode(b'{"what": "y"}').decode()
        record = InvocationRecord(event=http_event(body=body, isBase64Encoded=True))

        make_json_body_parser()(record)

        assert record.internal['parsed_body'] == {'what': 'y'}

    def test_get_bodies_are_not_parsed(self):
        record = InvocationRecord(event=http_event(method='GET', body='{"what": "x"}'))

        make_json_body_parser()(record)

        assert 'parsed_body' not in record.internal

    def test_non_json_content_type_keeps_raw_body(self):
        record = InvocationRecord(event=http_event(body='plain', headers={'content-type': 'text/plain'}))

        make_json_body_parser()(record)

        assert record.internal['parsed_body'] == 'plain'

    def test_invalid_json_is_captured(self):
        record = InvocationRecord(event=http_event(body='{not json'))

        make_json_body_parser()(record)

        assert isinstance(record.error, ValidationError)
        assert record.error.status_code == 400
        assert record.short_circuited

    def test_multipart_is_detected_and_left_raw(self):
        headers = {'Content-Type': 'multipart/form-data; boundary=xyz'}
        record = InvocationRecord(event=http_event(body='--xyz--', headers=headers))

        make_multipart_detector()(record)
        make_json_body_parser()(record)

        assert record.internal['multipart'] is True
        assert record.internal['parsed_body'] == '--xyz--'

    def test_undecodable_multipart_body_is_a_client_error(self):
        headers = {'Content-Type': 'multipart/form-data; boundary=xyz'}
        # valid base64, but not utf-8 once decoded
        record = InvocationRecord(event=http_event(body='//4=', headers=headers, isBase64Encoded=True))

        make_multipart_detector()(record)

        assert isinstance(record.error, ValidationError)
        assert record.error.status_code == 400
        assert record.error.field_errors[0]['type'] == 'body_decoding'

    def test_content_negotiation_defaults_to_content_type(self):
        record = InvocationRecord(event=http_event(headers={}))

        make_content_negotiation('application/json')(record)

        assert record.internal['preferred_media_types'] == ['application/json']

    def test_content_negotiation_rejects_unacceptable_media(self):
        record = InvocationRecord(event=http_event(headers={'Accept': 'text/html'}))

        make_content_negotiation('application/json')(record)

        assert isinstance(record.error, BusinessError)
        assert record.error.status_code == 406

    def test_event_validator_accepts_parsed_body(self):
        record = InvocationRecord(event=http_event())
        record.internal['parsed_body'] = {'what': 'x'}

        make_event_validator(What, http=True)(record)

        assert record.validated
        assert record.payload == What(what='x')

    def test_event_validator_uses_parameters_without_body(self):
        event = http_event(method='GET', queryStringParameters={'what': 'q'}, pathParameters=None)
        record = InvocationRecord(event=event)

        make_event_validator(What, http=True)(record)

        assert record.body.what == 'q'

    def test_event_validator_captures_failures(self):
        record = InvocationRecord(event=http_event())
        record.internal['parsed_body'] = {'what': 1}

        make_event_validator(What, http=True)(record)

        assert isinstance(record.error, ValidationError)
        assert record.error.field_errors[0]['field'] == 'what'
        assert not record.validated

    def test_strict_event_validator_is_fatal(self):
        record = InvocationRecord(event={'count': '5'})

        make_event_validator(Count, http=False, strict=True)(record)

        assert isinstance(record.error, ValidationError)
        assert record.error.expose is True
        assert record.fatal

    def test_lax_event_validator_is_not_fatal(self):
        record = InvocationRecord(event={'count': 'five'})

        make_event_validator(Count, http=False)(record)

        assert isinstance(record.error, ValidationError)
        assert not record.fatal

    def test_non_http_validator_reads_the_raw_event(self):
        record = InvocationRecord(event={'count': '5'})

        make_event_validator(Count, http=False)(record)

        assert record.body == Count(count=5)


class TestAfterSteps:
    """Test cases for response-side steps."""

    def test_shape_wraps_raw_results(self):
        record = InvocationRecord(event={})
        record.respond({'what': 'x'})

        make_shape('application/json')(record)

        assert record.response == {
            'statusCode': 200,
            'headers': {'Content-Type': 'application/json'},
            'body': {'what': 'x'},
        }

    def test_shape_keeps_envelopes(self):
        record = InvocationRecord(event={})
        record.respond({'statusCode': 201, 'headers': {'content-type': 'text/csv'}, 'body': 'a,b'})

        make_shape('application/json')(record)

        assert record.response['statusCode'] == 201
        assert record.response['headers'] == {'content-type': 'text/csv'}

    def test_shape_turns_none_into_empty_object(self):
        record = InvocationRecord(event={})
        record.respond(None)

        make_shape('application/json')(record)

        assert record.response['body'] == {}

    def test_serializer_is_compact_json(self):
        record = InvocationRecord(event={})
        record.respond({'statusCode': 200, 'headers': {}, 'body': {'what': 'x'}})

        make_serializer()(record)

        assert record.response['body'] == '{"what":"x"}'

    def test_serializer_uses_custom_dumps(self):
        record = InvocationRecord(event={})
        record.respond({'statusCode': 200, 'headers': {}, 'body': {'what': 'x'}})

        make_serializer(lambda value: 'custom')(record)

        assert record.response['body'] == 'custom'

    def test_after_steps_skip_records_with_errors(self):
        record = InvocationRecord(event={})
        record.respond({'what': 'x'})
        record.fail(RuntimeError('boom'))

        make_shape('application/json')(record)
        make_serializer()(record)

        assert record.response == {'what': 'x'}

    def test_response_validator_dumps_validated_value(self):
        record = InvocationRecord(event={})
        record.respond({'count': '3', 'extra': True})

        make_response_validator(Count, http=False)(record)

        assert record.response == {'count': 3}

    def test_response_validator_checks_envelope_body(self):
        record = InvocationRecord(event={})
        record.respond({'statusCode': 200, 'body': {'count': 'nope'}})

        make_response_validator(Count, http=True)(record)

        assert isinstance(record.error, ValidationError)
        assert record.error.source == 'response'
        assert record.error.status_code == 500

    def test_cors_headers_echo_origin_with_credentials(self):
        record = InvocationRecord(event=http_event(headers={'Origin': 'https://app.example.com'}))
        record.respond({'statusCode': 200, 'headers': {}, 'body': '{}'})

        make_cors(CORSConfig(allow_origin='*', allow_credentials=True))(record)

        headers = record.response['headers']
        assert headers['Access-Control-Allow-Origin'] == 'https://app.example.com'
        assert headers['Access-Control-Allow-Credentials'] == 'true'

    def test_cors_disabled(self):
        record = InvocationRecord(event=http_event(headers={'Origin': 'https://app.example.com'}))
        record.respond({'statusCode': 200, 'headers': {}, 'body': '{}'})

        make_cors(False)(record)

        assert record.response['headers'] == {}

    def test_cors_needs_an_origin(self):
        record = InvocationRecord(event=http_event())
        record.respond({'statusCode': 200, 'headers': {}, 'body': '{}'})

        make_cors(CORSConfig())(record)

        assert record.response['headers'] == {}

    def test_cors_rejects_unlisted_origins(self):
        record = InvocationRecord(event=http_event(headers={'Origin': 'https://evil.example.com'}))
        record.respond({'statusCode': 200, 'headers': {}, 'body': '{}'})

        make_cors(CORSConfig(allow_origin='https://app.example.com'))(record)

        assert 'Access-Control-Allow-Origin' not in record.response['headers']


class TestErrorHandler:
    """Test cases for the terminal error mapper."""

    def test_http_errors_are_shaped(self):
        record = InvocationRecord(event=http_event(headers={'Origin': 'https://app.example.com'}))
        record.fail(BusinessError('Order is closed', status_code=409, error_code='ORDER_CLOSED'))

        make_error_handler(http=True, cors=CORSConfig(allow_credentials=True))(record)

        assert record.response['statusCode'] == 409
        body = json.loads(record.response['body'])
        assert body['error']['code'] == 'ORDER_CLOSED'
        assert body['error']['message'] == 'Order is closed'
        assert record.response['headers']['Access-Control-Allow-Credentials'] == 'true'

    def test_unknown_errors_are_hidden(self):
        record = InvocationRecord(event=http_event())
        record.fail(RuntimeError('database password is hunter2'))

        make_error_handler(http=True)(record)

        assert record.response['statusCode'] == 500
        assert 'hunter2' not in record.response['body']

    def test_error_headers_are_kept(self):
        error = BusinessError('Slow down', status_code=429)
        error.headers = {'Retry-After': '30'}
        record = InvocationRecord(event=http_event())
        record.fail(error)

        make_error_handler(http=True)(record)

        assert record.response['headers']['Retry-After'] == '30'

    def test_non_http_errors_are_reraised(self):
        error = KeyError('missing')
        record = InvocationRecord(event={})
        record.fail(error)

        with pytest.raises(KeyError) as exc_info:
            make_error_handler(http=False)(record)

        assert exc_info.value is error

    def test_include_details_from_options(self):
        phases = build_safe_defaults('application/json', options=StackOptions(include_error_details=True))
        record = InvocationRecord(event=http_event())
        record.fail(RuntimeError('boom'))

        phases.on_error[0](record)

        assert json.loads(record.response['body'])['error']['details']['error_type'] == 'RuntimeError'

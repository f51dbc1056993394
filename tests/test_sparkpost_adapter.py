import pytest

from voilab_send.exceptions import MessageAlreadySentError
from voilab_send.providers.sparkpost_adapter import SparkPostAdapter, SparkPostV1Adapter
from voilab_send.providers.transports import SparkPostTransport

from conftest import FakeResponse, FakeTransport


def _ok(message_id="tx-1"):
    return FakeResponse(status_code=200, json_body={"results": {"id": message_id}})


class TestSparkPostV1Adapter:
    def test_payload_shape(self):
        adapter = SparkPostV1Adapter({"apikey": "key"}, transport=FakeTransport())
        adapter.set_from("me@x.com", "Me").add_to("a@x.com", "Ann").add_to("b@x.com")
        adapter.add_cc("c@x.com").set_subject("Hi").set_html("<p>{{name}}</p>")
        adapter.add_global_data("name", "Ann")

        assert adapter.build_payload() == {
            "recipients": [
                {"address": {"email": "a@x.com", "name": "Ann"}},
                {"address": "b@x.com"},
            ],
            "content": {
                "from": {"email": "me@x.com", "name": "Me"},
                "subject": "Hi",
                "html": "<p>{{name}}</p>",
            },
            "substitution_data": {"name": "Ann"},
        }

    def test_template_replaces_inline_content(self):
        adapter = SparkPostV1Adapter({"apikey": "key"}, transport=FakeTransport())
        adapter.set_from("me@x.com").add_to("a@x.com").set_subject("ignored").set_template("welcome")

        assert adapter.build_payload()["content"] == {"from": "me@x.com", "template_id": "welcome"}

    def test_transport_from_config(self):
        adapter = SparkPostV1Adapter({"apikey": "key", "endpoint": "https://api.eu.sparkpost.com/api/v1/"})

        assert isinstance(adapter.transport, SparkPostTransport)
        assert adapter.transport.endpoint == "https://api.eu.sparkpost.com/api/v1"

    @pytest.mark.asyncio
    async def test_send_parses_transmission_id(self):
        adapter = SparkPostV1Adapter({"apikey": "key"}, transport=FakeTransport(response=_ok("tx-9")))
        adapter.add_to("a@x.com").set_text("hi")

        result = await adapter.send()

        assert result.message_id == "tx-9"
        assert result.status_code == 200


class TestSparkPostAdapter:
    def test_cc_and_bcc_point_at_primary_recipient(self):
        adapter = SparkPostAdapter({"apikey": "key"}, transport=FakeTransport())
        adapter.add_to("a@x.com").add_cc("c@x.com", "Cee").add_bcc("d@x.com").set_text("hi")

        payload = adapter.build_payload()

        assert payload["recipients"] == [
            {"address": "a@x.com"},
            {
                "address": {"email": "c@x.com", "name": "Cee", "header_to": "a@x.com"},
                "substitution_data": {"recipient_type": "CC"},
            },
            {
                "address": {"email": "d@x.com", "header_to": "a@x.com"},
                "substitution_data": {"recipient_type": "BCC"},
            },
        ]
        assert payload["content"]["headers"] == {"CC": "c@x.com"}

    @pytest.mark.asyncio
    async def test_bcc_fanout_sends_one_copy_per_bcc(self):
        transport = FakeTransport(response=_ok())
        adapter = SparkPostAdapter({"apikey": "key", "cciAsEmail": True}, transport=transport)
        adapter.add_to("a@x.com", "Ann").add_bcc("b@x.com, c@x.com").set_subject("Hi")
        adapter.set_global_data({"site": "shop"})

        result = await adapter.send()

        assert len(transport.payloads) == 3
        for payload in transport.payloads:
            assert all(
                r.get("substitution_data", {}).get("recipient_type") != "BCC"
                for r in payload["recipients"]
            )
            assert payload["content"]["subject"] == "Hi"

        primary, first_copy, second_copy = transport.payloads
        assert primary["recipients"] == [{"address": {"email": "a@x.com", "name": "Ann"}}]
        assert primary["substitution_data"] == {"site": "shop"}
        assert first_copy["recipients"] == [{"address": "b@x.com"}]
        assert second_copy["recipients"] == [{"address": "c@x.com"}]
        for copy in (first_copy, second_copy):
            assert copy["substitution_data"] == {"site": "shop", "cciName": "Ann", "cciEmail": "a@x.com"}

        assert len(result.parts) == 3
        assert result.message_id == "tx-1"

    @pytest.mark.asyncio
    async def test_bcc_fanout_reports_first_failure_after_all_settle(self):
        error = RuntimeError("rejected")
        transport = FakeTransport(response=_ok(), fail_on=[1], error=error)
        adapter = SparkPostAdapter({"apikey": "key", "cciAsEmail": True}, transport=transport)
        adapter.add_to("a@x.com").add_bcc("b@x.com").add_bcc("c@x.com")

        with pytest.raises(RuntimeError) as exc_info:
            await adapter.send()

        assert exc_info.value is error
        assert len(transport.payloads) == 3

    @pytest.mark.asyncio
    async def test_bcc_only_fanout_skips_empty_primary_copy(self):
        transport = FakeTransport(response=_ok())
        adapter = SparkPostAdapter({"apikey": "key", "cciAsEmail": True}, transport=transport)
        adapter.add_bcc("b@x.com").add_bcc("c@x.com").set_subject("Hi")

        result = await adapter.send()

        assert len(transport.payloads) == 2
        assert all(payload["recipients"] for payload in transport.payloads)
        assert [p["recipients"] for p in transport.payloads] == [
            [{"address": "b@x.com"}],
            [{"address": "c@x.com"}],
        ]
        for payload in transport.payloads:
            assert payload["substitution_data"] == {"cciName": "", "cciEmail": ""}
        assert len(result.parts) == 2

    @pytest.mark.asyncio
    async def test_fanout_without_bcc_is_single_send(self):
        transport = FakeTransport(response=_ok())
        adapter = SparkPostAdapter({"apikey": "key", "cciAsEmail": True}, transport=transport)
        adapter.add_to("a@x.com")

        result = await adapter.send()

        assert len(transport.payloads) == 1
        assert result.parts == []

    @pytest.mark.asyncio
    async def test_fanout_is_single_use(self):
        adapter = SparkPostAdapter({"apikey": "key", "cciAsEmail": True}, transport=FakeTransport(response=_ok()))
        adapter.add_to("a@x.com").add_bcc("b@x.com")

        await adapter.send()
        with pytest.raises(MessageAlreadySentError):
            await adapter.send()

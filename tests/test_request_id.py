import itertools
import threading

import pytest
from pydantic import ValidationError

from client.sequencing import GeneratorRegistry, RequestIdGenerator, RequestKind
from codec import decode, encode
from codec.errors import SequenceExhaustedError
from shared.message import INT32_MAX, UINT64_MAX
from shared.schemas import LensOverlayRequestId, LensOverlayRoutingInfo


def _counting_factory():
    counter = itertools.count(1)
    return lambda: next(counter).to_bytes(2, "big")


def test_first_requests_of_a_session():
    generator = RequestIdGenerator(42, analytics_id_factory=_counting_factory())

    first = generator.next_request(RequestKind.IMAGE)
    assert (first.uuid, first.sequence_id, first.image_sequence_id) == (42, 1, 1)
    assert first.analytics_id == b"\x00\x01"

    second = generator.next_request(RequestKind.PLAIN, interaction=True)
    assert (second.sequence_id, second.image_sequence_id) == (2, 1)
    assert second.analytics_id == b"\x00\x02"
    assert second.analytics_id != first.analytics_id


def test_analytics_id_only_changes_on_interaction():
    generator = RequestIdGenerator(1, analytics_id_factory=_counting_factory())
    first = generator.next_request(RequestKind.IMAGE)
    plain = generator.next_request()
    assert plain.analytics_id == first.analytics_id


def test_counters_increase_over_many_requests():
    generator = RequestIdGenerator(7)
    kinds = [RequestKind.IMAGE, RequestKind.PLAIN, RequestKind.CONTEXTUAL, RequestKind.IMAGE | RequestKind.CONTEXTUAL]
    issued = [generator.next_request(kinds[i % len(kinds)]) for i in range(100)]

    assert [r.sequence_id for r in issued] == list(range(1, 101))
    assert issued[-1].image_sequence_id == 50
    assert issued[-1].long_context_id == 50
    for earlier, later in zip(issued, issued[1:]):
        assert later.image_sequence_id >= earlier.image_sequence_id
        assert later.long_context_id >= earlier.long_context_id
        assert later.image_sequence_id <= later.sequence_id


def test_region_search_does_not_advance_image_sequence():
    generator = RequestIdGenerator(3)
    generator.next_request(RequestKind.IMAGE)

    region = generator.next_request(RequestKind.IMAGE | RequestKind.REGION_SEARCH)

    assert region.sequence_id == 2
    assert region.image_sequence_id == 1


def test_plain_then_image_then_region_search_sequence():
    generator = RequestIdGenerator(42)

    plain = generator.next_request(RequestKind.PLAIN)
    image = generator.next_request(RequestKind.IMAGE)
    region = generator.next_request(RequestKind.REGION_SEARCH)

    assert (plain.sequence_id, plain.image_sequence_id, plain.long_context_id) == (1, 0, 0)
    assert (image.sequence_id, image.image_sequence_id) == (2, 1)
    assert (region.sequence_id, region.image_sequence_id) == (3, 1)


def test_concurrent_requests_never_repeat_a_sequence_id():
    generator = RequestIdGenerator(99)
    results = []
    lock = threading.Lock()

    def worker():
        for _ in range(200):
            request_id = generator.next_request(RequestKind.IMAGE)
            with lock:
                results.append(request_id)

    threads = [threading.Thread(target=worker) for _ in range(8)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()

    assert sorted(r.sequence_id for r in results) == list(range(1, 1601))
    assert sorted(r.image_sequence_id for r in results) == list(range(1, 1601))
    assert generator.current().sequence_id == 1600


def test_snapshots_are_independent_of_later_requests():
    routing = LensOverlayRoutingInfo(server_address="a")
    generator = RequestIdGenerator(5, routing_info=routing)
    first = generator.next_request()
    generator.update_routing_info(LensOverlayRoutingInfo(cell_address="c"))
    generator.next_request()

    assert first.sequence_id == 1
    assert first.routing_info.server_address == "a"
    assert generator.current().routing_info.cell_address == "c"


def test_exhausted_counter_raises():
    generator = RequestIdGenerator(1)
    generator._sequence_id = INT32_MAX

    with pytest.raises(SequenceExhaustedError):
        generator.next_request()
    assert generator.current().sequence_id == INT32_MAX


def test_invalid_uuid_is_refused():
    with pytest.raises(ValueError):
        RequestIdGenerator(-1)
    with pytest.raises(ValueError):
        RequestIdGenerator(1 << 64)


def test_registry_keeps_one_generator_per_uuid():
    registry = GeneratorRegistry()
    first = registry.get_or_create(10)

    assert registry.get_or_create(10) is first
    fresh = registry.new_session()
    assert fresh.uuid != 10
    assert len(registry) == 2

    registry.discard(10)
    assert registry.get_or_create(10) is not first


def test_request_id_wire_bytes():
    assert encode(LensOverlayRequestId(uuid=42, sequence_id=1)) == b"\x08\x2a\x10\x01"


def test_request_id_round_trip_with_routing():
    request_id = LensOverlayRequestId(
        uuid=UINT64_MAX,
        sequence_id=3,
        image_sequence_id=2,
        analytics_id=b"\x00\xff",
        long_context_id=1,
        routing_info=LensOverlayRoutingInfo(server_address="srv", blade_target="blade"),
    )

    data = encode(request_id)
    decoded = decode(LensOverlayRequestId, data).message

    assert decoded == request_id
    assert decoded.routing_info.has_preference
    assert data.endswith(b"\x48\x01")


def test_empty_routing_info_is_still_present():
    request_id = LensOverlayRequestId(uuid=1, routing_info=LensOverlayRoutingInfo())

    decoded = decode(LensOverlayRequestId, encode(request_id)).message

    assert decoded.routing_info == LensOverlayRoutingInfo()
    assert not decoded.routing_info.has_preference


def test_counter_out_of_int32_range_is_rejected_by_model():
    with pytest.raises(ValidationError):
        LensOverlayRequestId(sequence_id=INT32_MAX + 1)

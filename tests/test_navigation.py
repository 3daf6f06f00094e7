"""Tests for the breadcrumb stack."""

import pytest

from common.types import NavigationFrame
from drive.navigation import NavigationState


@pytest.fixture
def navigation():
    state = NavigationState()
    state.push(NavigationFrame('QmPhotos', 'photos'))
    state.push(NavigationFrame('Qm2024', '2024'))
    return state


def test_empty_state_is_root():
    state = NavigationState()

    assert state.at_root
    assert state.current is None
    assert state.current_address is None
    assert state.path() == '/'
    assert state.pop() is None


def test_push_and_pop(navigation):
    assert navigation.current_address == 'Qm2024'
    assert navigation.path() == '/photos/2024'

    assert navigation.pop().address == 'Qm2024'
    assert navigation.current_address == 'QmPhotos'


def test_pop_to_breadcrumb(navigation):
    navigation.pop_to(0)

    assert [f.address for f in navigation.breadcrumbs()] == ['QmPhotos']


def test_pop_to_root(navigation):
    navigation.pop_to(-1)

    assert navigation.at_root


def test_pop_to_out_of_range(navigation):
    with pytest.raises(IndexError):
        navigation.pop_to(5)
    with pytest.raises(IndexError):
        navigation.pop_to(-2)


def test_repoint_rewrites_every_matching_frame(navigation):
    navigation.push(NavigationFrame('QmPhotos', 'photos again'))

    assert navigation.repoint('QmPhotos', 'QmPhotosV2') == 2

    assert [f.address for f in navigation.breadcrumbs()] == ['QmPhotosV2', 'Qm2024', 'QmPhotosV2']
    assert navigation.breadcrumbs()[0].display_name == 'photos'


def test_repoint_unknown_address_is_noop(navigation):
    assert navigation.repoint('QmOther', 'QmNew') == 0
    assert navigation.current_address == 'Qm2024'


def test_breadcrumbs_are_a_copy(navigation):
    navigation.breadcrumbs().clear()

    assert len(navigation.breadcrumbs()) == 2

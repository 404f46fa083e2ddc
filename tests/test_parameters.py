import math

import pytest

from nanohelix.parameters import (
    GEARY_2014_DNA,
    GEARY_2014_RNA,
    INTER_CENTER_GAP,
    OLD_ENSNANO,
    PRESETS,
    DnaParameters,
    preset,
)


def test_presets_validate_and_share_inter_center_distance():
    for params in PRESETS.values():
        params.validate()
    assert GEARY_2014_DNA.inter_center_distance == pytest.approx(INTER_CENTER_GAP)
    assert GEARY_2014_RNA.inter_center_distance == pytest.approx(INTER_CENTER_GAP)
    assert OLD_ENSNANO.inter_center_distance == pytest.approx(INTER_CENTER_GAP)


def test_geary_dna_values():
    assert GEARY_2014_DNA.z_step == pytest.approx(0.332)
    assert GEARY_2014_DNA.helix_radius == pytest.approx(0.93)
    assert GEARY_2014_DNA.bases_per_turn == pytest.approx(10.44)
    assert math.degrees(GEARY_2014_DNA.groove_angle) == pytest.approx(170.4)
    assert GEARY_2014_DNA.inclination == pytest.approx(0.375)


@pytest.mark.parametrize(
    "changes",
    [
        {"z_step": 0.0},
        {"helix_radius": -1.0},
        {"bases_per_turn": float("nan")},
        {"inter_helix_gap": 0.0},
        {"groove_angle": 7.0},
        {"inclination": float("inf")},
    ],
)
def test_validate_rejects_bad_values(changes):
    with pytest.raises(ValueError):
        GEARY_2014_DNA.with_updates(**changes)


def test_from_payload_defaults_missing_inclination():
    payload = GEARY_2014_DNA.to_payload()
    del payload["inclination"]
    params = DnaParameters.from_payload(payload)
    assert params.inclination == 0.0
    assert params.z_step == GEARY_2014_DNA.z_step


def test_from_payload_rejects_garbage():
    with pytest.raises(ValueError):
        DnaParameters.from_payload({"z_step": "tall"})


def test_dist_ac_exceeds_rise():
    params = GEARY_2014_DNA
    assert params.dist_ac() > params.z_step
    chord = 2 * params.helix_radius * math.sin(math.pi / params.bases_per_turn)
    assert params.dist_ac() == pytest.approx(math.hypot(chord, params.z_step))


def test_closest_named_and_describe():
    assert GEARY_2014_RNA.closest_named()[0] == "GEARY_2014_RNA"
    tweaked = OLD_ENSNANO.with_updates(z_step=0.335)
    assert tweaked.closest_named()[0] == "OLD_ENSNANO"
    assert "preset: GEARY_2014_DNA" in GEARY_2014_DNA.describe()
    assert "closest preset: OLD_ENSNANO" in tweaked.describe()


def test_preset_lookup():
    assert preset("geary_2014_dna") is GEARY_2014_DNA
    with pytest.raises(ValueError):
        preset("B-DNA")

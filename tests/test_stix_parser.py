"""
Tests for STIX bundle parsing and relationship classification.
"""

from datetime import datetime, timezone

import pytest

from attack_sync.schemas import TechniqueRecord
from attack_sync.stix_parser import RelationshipMapping, classify_relationship, parse_bundle

from factories import (
    enterprise_catalog, make_group, make_relationship, make_software, make_tactic,
    make_technique, stix_id
)


class TestParseBundle:
    """Classification of a mixed object stream into typed buckets."""

    def test_every_object_is_kept_as_raw(self):
        objects, _ = enterprise_catalog()
        parsed = parse_bundle(objects, 'enterprise')

        assert [record.stix_id for record in parsed.objects] == [obj['id'] for obj in objects]
        assert all(record.domain == 'enterprise' for record in parsed.objects)

    def test_typed_buckets(self):
        objects, named = enterprise_catalog()
        parsed = parse_bundle(objects, 'enterprise')

        assert parsed.counts() == {
            'objects': len(objects),
            'tactics': 2,
            'techniques': 3,
            'groups': 1,
            'software': 2,
            'mitigations': 1,
            'datasources': 1,
            'datacomponents': 1,
            'relationships': 6,
        }
        assert {s.software_type for s in parsed.software} == {'malware', 'tool'}
        assert parsed.groups[0].aliases == ['APT29', 'Cozy Bear']
        assert parsed.datacomponents[0].datasource_ref == named['datasource']['id']
        assert {t.shortname for t in parsed.tactics} == {'execution', 'persistence'}

    def test_unknown_types_stay_raw_only(self):
        matrix = {'type': 'x-mitre-matrix', 'id': stix_id('x-mitre-matrix'), 'name': 'Matrix'}
        campaign = {'type': 'x-future-thing', 'id': stix_id('x-future-thing')}
        parsed = parse_bundle([matrix, campaign], 'enterprise')

        assert [r.stix_type for r in parsed.objects] == ['x-mitre-matrix', 'x-future-thing']
        assert parsed.counts()['objects'] == 2
        assert sum(parsed.counts().values()) == 2

    def test_objects_without_id_are_skipped(self):
        parsed = parse_bundle([{'type': 'attack-pattern'}, 'garbage'], 'enterprise')
        assert parsed.is_empty()

    def test_malformed_object_is_skipped_without_aborting(self):
        bad = make_technique('T1001', 'Data Obfuscation', spec_version={'major': 2})
        good = make_group()
        parsed = parse_bundle([bad, good], 'enterprise')

        assert [record.stix_id for record in parsed.objects] == [good['id']]
        assert parsed.techniques == []
        assert [record.stix_id for record in parsed.groups] == [good['id']]

    def test_missing_attack_reference_keeps_raw_only(self):
        technique = make_technique()
        del technique['external_references']
        group = make_group()
        group['external_references'] = [{'source_name': 'capec', 'external_id': 'CAPEC-1'}]

        parsed = parse_bundle([technique, group], 'enterprise')

        assert len(parsed.objects) == 2
        assert parsed.techniques == []
        assert parsed.groups == []
        assert parsed.technique_tactics == []

    def test_mobile_authority_is_recognized(self):
        technique = make_technique('T1398', 'Boot or Logon Initialization Scripts')
        technique['external_references'][0]['source_name'] = 'mitre-mobile-attack'
        technique['kill_chain_phases'] = [{'kill_chain_name': 'mitre-mobile-attack', 'phase_name': 'persistence'}]

        parsed = parse_bundle([technique], 'mobile')

        assert parsed.techniques[0].external_id == 'T1398'
        assert parsed.technique_tactics[0].tactic_shortname == 'persistence'


class TestTechniqueDerivation:
    """Sub-technique and tactic membership fields of techniques."""

    def test_subtechnique(self):
        parsed = parse_bundle([make_technique('T1059.001', 'PowerShell')], 'enterprise')
        technique = parsed.techniques[0]

        assert isinstance(technique, TechniqueRecord)
        assert technique.is_subtechnique is True
        assert technique.parent_external_id == 'T1059'

    def test_parent_technique(self):
        technique = parse_bundle([make_technique('T1059')], 'enterprise').techniques[0]

        assert technique.is_subtechnique is False
        assert technique.parent_external_id is None

    def test_extension_fields(self):
        technique = parse_bundle([make_technique()], 'enterprise').techniques[0]

        assert technique.platforms == ['Windows', 'Linux']
        assert technique.permissions_required == ['User']
        assert technique.detection == 'Monitor process creation'
        assert technique.data_sources == ['Process: Process Creation']
        assert technique.version == '2.4'

    def test_tactic_links_only_from_attack_kill_chain(self):
        technique = make_technique(phases=('execution', 'persistence'))
        technique['kill_chain_phases'].append({'kill_chain_name': 'lockheed-martin', 'phase_name': 'exploitation'})

        parsed = parse_bundle([technique], 'enterprise')

        assert [(l.technique_stix_id, l.tactic_shortname) for l in parsed.technique_tactics] == [
            (technique['id'], 'execution'),
            (technique['id'], 'persistence'),
        ]
        assert parsed.techniques[0].kill_chain_phases == ['execution', 'persistence']

    def test_links_do_not_require_tactics_in_batch(self):
        parsed = parse_bundle([make_technique()], 'enterprise')
        assert parsed.tactics == []
        assert len(parsed.technique_tactics) == 1


class TestLifecycleFields:
    """Revocation, deprecation and timestamps."""

    def test_revoked_record_is_kept(self):
        technique = make_technique(revoked=True)
        parsed = parse_bundle([technique], 'enterprise')

        assert parsed.techniques[0].is_revoked is True
        assert parsed.objects[0].is_revoked is True

    def test_deprecated_counts_as_revoked(self):
        tactic = make_tactic(x_mitre_deprecated=True)
        parsed = parse_bundle([tactic], 'enterprise')
        assert parsed.tactics[0].is_revoked is True

    def test_modified_timestamp(self):
        parsed = parse_bundle([make_group(modified='2023-04-12T15:30:00.000Z')], 'enterprise')
        assert parsed.groups[0].modified == datetime(2023, 4, 12, 15, 30, tzinfo=timezone.utc)
        assert parsed.objects[0].modified == parsed.groups[0].modified

    def test_modified_falls_back_to_created(self):
        group = make_group()
        del group['modified']
        parsed = parse_bundle([group], 'enterprise')
        assert parsed.groups[0].modified == datetime(2017, 5, 31, 21, 30, tzinfo=timezone.utc)

    def test_malformed_timestamp_becomes_none(self):
        parsed = parse_bundle([make_group(modified='last tuesday')], 'enterprise')
        assert parsed.groups[0].modified is None


class TestClassifyRelationship:
    """Identifier-prefix rules deciding which derived map an edge feeds."""

    @pytest.mark.parametrize('relationship_type,source_type,target_type,expected', [
        ('uses', 'intrusion-set', 'attack-pattern', RelationshipMapping.GROUP_TECHNIQUE),
        ('uses', 'malware', 'attack-pattern', RelationshipMapping.SOFTWARE_TECHNIQUE),
        ('uses', 'tool', 'attack-pattern', RelationshipMapping.SOFTWARE_TECHNIQUE),
        ('mitigates', 'course-of-action', 'attack-pattern', RelationshipMapping.MITIGATION_TECHNIQUE),
        ('detects', 'x-mitre-data-component', 'attack-pattern', RelationshipMapping.DATACOMPONENT_TECHNIQUE),
        ('uses', 'intrusion-set', 'malware', None),
        ('uses', 'campaign', 'attack-pattern', None),
        ('uses', 'x-future-kind', 'x-other-kind', None),
        ('mitigates', 'intrusion-set', 'attack-pattern', None),
        ('subtechnique-of', 'attack-pattern', 'attack-pattern', None),
        ('revoked-by', 'intrusion-set', 'intrusion-set', None),
    ])
    def test_rules(self, relationship_type, source_type, target_type, expected):
        assert classify_relationship(relationship_type, stix_id(source_type), stix_id(target_type)) == expected

    def test_malformed_refs_are_ignored(self):
        assert classify_relationship('uses', '', 'attack-pattern--1') is None
        assert classify_relationship('uses', 'not-an-id', 'attack-pattern--1') is None

    def test_relationship_records(self):
        group = make_group()
        software = make_software()
        relationship = make_relationship(group, software, revoked=True)
        parsed = parse_bundle([relationship], 'enterprise')

        record = parsed.relationships[0]
        assert record.relationship_type == 'uses'
        assert record.source_ref == group['id']
        assert record.target_ref == software['id']
        assert record.is_revoked is True

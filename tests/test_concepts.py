"""Tests for concept index loading, entity matching and concept search."""

import json
import logging

from kbrecall.query.concepts import ConceptIndex, EntityMatcher, concept_search


def test_load_missing_index_is_empty(tmp_path, caplog):
    with caplog.at_level(logging.WARNING):
        index = ConceptIndex.load(tmp_path / "nope.json")
    assert len(index) == 0
    assert "not found" in caplog.text


def test_load_corrupt_index_is_empty(tmp_path):
    path = tmp_path / "index.json"
    path.write_text("{not json")
    assert len(ConceptIndex.load(path)) == 0


def test_load_accepts_bare_mapping(tmp_path):
    path = tmp_path / "index.json"
    path.write_text(json.dumps({"Kamino": {"files": {"a.md": {"count": 2}}}}))
    index = ConceptIndex.load(path)
    assert "kamino" in index
    assert index.files_for("KAMINO") == {"a.md": {"count": 2}}
    assert index.total_mentions("kamino") == 2


def test_index_accessors(concept_index):
    assert concept_index.names() == ["ghost", "jitosol", "kamino", "moongate", "yield"]
    assert concept_index.related("kamino")[0] == "yield"
    assert concept_index.total_mentions("yield") == 15
    assert concept_index.total_mentions("unknown") is None


def test_entity_matcher_consumes_longest_alias_first():
    matcher = EntityMatcher(entities=["moon gate", "gate"])
    assert matcher.match("the Moon Gate launch") == ["moon gate"]
    assert matcher.match("gatekeeper notes") == []


def test_entity_matcher_aliases_map_to_canonical():
    matcher = EntityMatcher(aliases={"jito": "jitosol"}, index_concepts=["jitosol", "ai"])
    assert matcher.match("jito and JitoSOL") == ["jitosol"]
    # Index concepts shorter than 3 chars are not matched
    assert matcher.match("ai notes") == []


def test_entity_matcher_from_config(config, concept_index):
    matcher = EntityMatcher.from_config(config, concept_index)
    assert matcher.match("kamino vs jitosol") == ["kamino", "jitosol"]

    config["concepts"]["match_index_concepts"] = False
    assert EntityMatcher.from_config(config, concept_index).match("kamino") == []


def test_concept_search_sums_counts_with_cooccurrence_boost(concept_index, memory_root):
    results = concept_search(["kamino", "jitosol"], concept_index, memory_root)
    paths = [r.path for r in results]
    assert paths == ["topics/defi-strategy.md", "daily/2026-02-10.md", "MEMORY.md"]
    # (4 + 2) * (1 + 0.5)
    assert results[0].score == 9.0
    assert results[0].rank == 1
    assert results[0].source == "concept"
    assert results[0].snippet.startswith("# DeFi Strategy")


def test_concept_search_synthesizes_label_for_unreadable_entry(concept_index, memory_root):
    results = concept_search(["ghost"], concept_index, memory_root)
    assert results[0].snippet == "[ghost] in Old Plans, Misc"


def test_concept_search_without_entities(concept_index, memory_root):
    assert concept_search([], concept_index, memory_root) == []
    assert concept_search(["unknown"], concept_index, memory_root) == []


def test_concept_search_respects_limit(concept_index, memory_root):
    assert len(concept_search(["kamino", "jitosol"], concept_index, memory_root, limit=1)) == 1


def test_mention_count_tolerates_malformed_records():
    index = ConceptIndex({"kamino": {"files": {
        "bare.md": 3,
        "text.md": {"count": "3"},
        "junk.md": {"count": "abc"},
        "zero.md": {"count": 0},
        "none.md": {"sections": ["Notes"]},
    }}})
    assert index.mention_count("kamino", "bare.md") == 1.0
    assert index.file_record("kamino", "bare.md") == {}
    assert index.mention_count("kamino", "text.md") == 3.0
    assert index.mention_count("kamino", "junk.md") == 1.0
    assert index.mention_count("kamino", "zero.md") == 1.0
    assert index.mention_count("kamino", "none.md") == 1.0
    assert index.total_mentions("kamino") == 7


def test_concept_search_with_malformed_counts(memory_root):
    index = ConceptIndex({"kamino": {"files": {
        "topics/defi-strategy.md": {"count": "5", "sections": "Yield"},
        "daily/2026-02-10.md": {"count": "abc"},
    }}})
    results = concept_search(["kamino"], index, memory_root)
    assert [(r.path, r.score) for r in results] == [
        ("topics/defi-strategy.md", 5.0),
        ("daily/2026-02-10.md", 1.0),
    ]

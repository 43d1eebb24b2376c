import pytest

from mrca_analyzer.exceptions import NewickParseError, TreeParseError
from mrca_analyzer.parser.newick_parser import (
    parse_metadata,
    parse_newick,
    parse_value,
    split_top_level,
)


def get_child(node, *path):
    for index in path:
        node = node.children[index]
    return node


def test_parse_newick_1():
    s = "(,,(,));"
    root = parse_newick(s)
    assert len(root.children) == 3


def test_parse_newick_2():
    s = "(A,B,(C,D));"
    root = parse_newick(s)
    assert len(root.children) == 3
    assert len(root.children[2].children) == 2
    assert get_child(root, 0).name == "A"
    assert get_child(root, 1).name == "B"
    assert get_child(root, 2, 0).name == "C"
    assert get_child(root, 2, 1).name == "D"


def test_parse_newick_3():
    s = "(A,B,(C,D)E)F;"
    root = parse_newick(s)
    assert get_child(root, 0).name == "A"
    assert get_child(root, 1).name == "B"
    assert get_child(root, 2, 0).name == "C"
    assert get_child(root, 2, 1).name == "D"
    assert get_child(root, 2).name == "E"
    assert get_child(root).name == "F"


def test_parse_newick_4():
    s = "(:0.1,:0.2,(:0.3,:0.4):0.5);"
    root = parse_newick(s)
    assert get_child(root, 0).length == 0.1
    assert get_child(root, 1).length == 0.2
    assert get_child(root, 2, 0).length == 0.3
    assert get_child(root, 2, 1).length == 0.4
    assert get_child(root, 2).length == 0.5


def test_parse_newick_5():
    s = "(A:0.1,B:0.2,(C:0.3,D:0.4):0.5):0.0;"
    root = parse_newick(s)
    assert get_child(root, 0).length == 0.1
    assert get_child(root, 2, 1).length == 0.4
    assert get_child(root, 2).length == 0.5
    assert get_child(root).length == 0.0
    assert get_child(root, 2, 0).name == "C"


def test_parent_pointers():
    root = parse_newick("((A,B),C);")
    for node in root.traverse():
        for child in node.children:
            assert child.parent is node
    assert root.parent is None


def test_missing_lengths_use_default():
    root = parse_newick("((A,B):2,C);")
    assert get_child(root, 0, 0).length == 1.0
    assert get_child(root, 0).length == 2.0

    root = parse_newick("((A,B):2,C);", default_length=0.5)
    assert get_child(root, 1).length == 0.5


def test_whitespace_is_ignored():
    root = parse_newick(" ( A : 1 ,\n  B : 2 ) ;\n")
    assert get_child(root, 0).name == "A"
    assert get_child(root, 1).length == 2.0


def test_quoted_labels():
    root = parse_newick("('Homo sapiens':1,'O''Brien':2);")
    assert get_child(root, 0).name == "Homo sapiens"
    assert get_child(root, 1).name == "O'Brien"


def test_beast_annotations():
    s = "(A[&rate=0.5,height_95%_HPD={1.0,2.0}]:1,B:1)[&posterior=1.0];"
    root = parse_newick(s)
    leaf = get_child(root, 0)
    assert leaf.name == "A"
    assert leaf.length == 1.0
    assert leaf.values == {"rate": 0.5, "height_95%_HPD": (1.0, 2.0)}
    assert root.annotation("posterior") == 1.0
    assert root.is_annotated()
    assert get_child(root, 1).annotation("rate") is None


def test_nhx_annotations():
    root = parse_newick("(A[&&NHX:S=human:E=1.1.1.1],B);")
    assert get_child(root, 0).values == {"S": "human", "E": "1.1.1.1"}


def test_multiple_trees():
    trees = parse_newick("(A,B);(C,D);")
    assert isinstance(trees, list)
    assert [t.list_index for t in trees] == [0, 1]
    assert trees[1].get_current_order() == ("C", "D")


def test_force_list_single_tree():
    trees = parse_newick("(A,B);", force_list=True)
    assert isinstance(trees, list)
    assert len(trees) == 1


def test_trailing_comment_is_not_a_tree():
    tree = parse_newick("(A,B);[end of file]")
    assert tree.get_current_order() == ("A", "B")


def test_translate_applies_to_leaves():
    root = parse_newick("((1,2)3,4);", translate={"1": "A", "2": "B", "3": "X", "4": "D"})
    assert root.get_current_order() == ("A", "B", "D")
    # Internal labels are not taxa
    assert get_child(root, 0).name == "3"


@pytest.mark.parametrize(
    "text",
    [
        "((A,B);",
        "(A,B));",
        "(A:x,B);",
        "(A:nan,B);",
        "(A:,B);",
        "(A,B)[&x=1;",
        "('A,B);",
        "A,B;",
        "",
        "   ",
    ],
)
def test_invalid_newick_raises(text):
    with pytest.raises(NewickParseError):
        parse_newick(text)


def test_parse_error_is_tree_parse_error():
    with pytest.raises(TreeParseError, match="position"):
        parse_newick("(A,B));")


def test_to_newick_round_trip():
    s = "((A:1,B:2):3,C:4);"
    root = parse_newick(s)
    assert root.to_newick() == "((A:1.000000,B:2.000000):3.000000,C:4.000000);"
    assert root.to_newick(lengths=False) == "((A,B),C);"
    again = parse_newick(root.to_newick())
    assert again.find_leaf("B").depth() == 5.0


def test_to_newick_keeps_annotations_and_quotes():
    root = parse_newick("('Homo sapiens'[&rate=0.5,hpd={1,2}]:1,B:1);")
    out = root.to_newick()
    assert out.startswith("('Homo sapiens'[&rate=0.5,hpd={1,2}]:1.000000")
    again = parse_newick(out)
    assert get_child(again, 0).values == {"rate": 0.5, "hpd": (1, 2)}


def test_parse_value():
    assert parse_value("3") == 3
    assert parse_value("0.25") == 0.25
    assert parse_value('"Europe"') == "Europe"
    assert parse_value("Europe") == "Europe"
    assert parse_value("{0.1,0.9}") == (0.1, 0.9)
    assert parse_value('{"a","b"}') == ("a", "b")


def test_split_top_level_respects_braces_and_quotes():
    assert split_top_level('a=1,b={1,2},c="x,y"') == ["a=1", "b={1,2}", 'c="x,y"']


def test_parse_metadata_bare_flag():
    assert parse_metadata("&R") == {"R": True}


def test_empty_statements_are_skipped():
    trees = parse_newick("((A:1,B:1):1,C:2);;\n;", force_list=True)
    assert len(trees) == 1
    assert trees[0].get_current_order() == ("A", "B", "C")


def test_only_empty_statements_raise():
    with pytest.raises(NewickParseError):
        parse_newick(";;")


def test_missing_lengths_can_stay_unset():
    root = parse_newick("((A,B):2,C);", default_length=None)
    assert get_child(root, 0, 0).length is None
    assert get_child(root, 0).length == 2.0

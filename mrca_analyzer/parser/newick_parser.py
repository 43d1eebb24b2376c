import ast
import math

from typing import Optional, Union, List, Dict, Tuple, Any, Mapping
from mrca_analyzer.exceptions import NewickParseError
from mrca_analyzer.tree import Node


# ===================================================================
# 1. METADATA PROCESSING FUNCTIONS
# ===================================================================


def parse_value(value: str) -> Any:
    """
    Parse a single annotation value.

    ``{a,b}`` ranges (e.g. 95% HPD intervals) become tuples, numbers and quoted
    strings are converted with ``ast.literal_eval``, anything else stays a string.
    """
    value = value.strip()
    if value.startswith("{") and value.endswith("}"):
        inner = value[1:-1]
        return tuple(parse_value(v) for v in split_top_level(inner) if v.strip())
    try:
        return ast.literal_eval(value)
    except (ValueError, SyntaxError):
        return value


def split_top_level(text: str, separator: str = ",") -> List[str]:
    """Split on ``separator`` outside of ``{...}`` groups and double quotes."""
    parts: List[str] = []
    current: List[str] = []
    brace_depth = 0
    in_quotes = False
    for char in text:
        if char == '"':
            in_quotes = not in_quotes
        elif not in_quotes and char == "{":
            brace_depth += 1
        elif not in_quotes and char == "}":
            brace_depth = max(0, brace_depth - 1)
        if char == separator and brace_depth == 0 and not in_quotes:
            parts.append("".join(current))
            current = []
        else:
            current.append(char)
    parts.append("".join(current))
    return parts


def split_token(token: str) -> Tuple[str, Any]:
    """
    Split a token into name and value parts.
    Handles both "name=value" and "name:value" formats for metadata.

    Args:
        token: A string token in format "name=value" or "name:value"

    Returns:
        Tuple of (name, parsed_value); a bare name maps to True
    """
    if "=" in token:
        name, value = token.split("=", 1)
    elif ":" in token:
        name, value = token.split(":", 1)
    else:
        return token, True
    return name.strip(), parse_value(value)


def parse_metadata(data: str) -> Dict[str, Any]:
    """
    Parse a metadata string into a dictionary.
    Handles BEAST-style comments and NHX format.

    Args:
        data: String containing metadata in format "&key1=value1,key2={a,b}"
              or NHX format "&&NHX:key1=value1:key2=value2"

    Returns:
        Dictionary mapping keys to their parsed values
    """
    data = data.strip()
    if data.startswith("&&NHX:"):
        tokens = data[6:].split(":")
        return dict(split_token(token) for token in tokens if "=" in token)

    data = data.lstrip("&")
    result: Dict[str, Any] = {}
    for token in split_top_level(data):
        if token.strip():
            name, value = split_token(token.strip())
            result[name] = value
    return result


def flush_meta_buffer(meta_buffer: List[str], stack: List[Node]) -> None:
    """
    Process the metadata buffer and update the current node's annotations.

    Args:
        meta_buffer: List of characters that form the metadata content
        stack: The current stack of nodes being processed
    """
    metadata = parse_metadata("".join(meta_buffer))
    if metadata and stack:
        stack[-1].values.update(metadata)
    meta_buffer.clear()


# ===================================================================
# 2. BUFFER PROCESSING FUNCTIONS
# ===================================================================


def flush_character_buffer(buffer: List[str], stack: List[Node]) -> None:
    """
    Process the character buffer and assign the name to the current node.

    Args:
        buffer: List of characters to join and assign as node name
        stack: The current stack of nodes being processed
    """
    if stack and buffer:
        stack[-1].name = "".join(buffer)
    buffer.clear()


def flush_length_buffer(buffer: List[str], stack: List[Node]) -> None:
    """
    Process the length buffer and assign the branch length to the current node.

    Args:
        buffer: List of characters to join and parse as branch length
        stack: The current stack of nodes being processed

    Raises:
        NewickParseError: If the buffer content is not a finite number
    """
    buffer_value = "".join(buffer).strip()
    buffer.clear()
    if not stack:
        return

    try:
        parsed_number = float(buffer_value)
    except ValueError:
        raise NewickParseError(f"Invalid branch length '{buffer_value}'")
    if math.isinf(parsed_number) or math.isnan(parsed_number):
        raise NewickParseError(f"Non-finite branch length '{buffer_value}'")
    stack[-1].length = parsed_number


def flush_buffer(buffer: List[str], stack: List[Node], mode: str) -> None:
    """
    Process the accumulated buffer based on the current parsing mode.

    Args:
        buffer: List of characters accumulated during parsing
        stack: The current stack of nodes being processed
        mode: Current parsing mode ("character_reader" or "length_reader")
    """
    if mode == "character_reader":
        flush_character_buffer(buffer, stack)
    elif mode == "length_reader":
        flush_length_buffer(buffer, stack)


# ===================================================================
# 3. NODE STACK MANAGEMENT FUNCTIONS
# ===================================================================


def init_nodestack() -> List[Node]:
    """
    Initialize the node stack with the root node of a new tree.

    Returns:
        List containing a single root node
    """
    return [Node(name="")]


def create_new_node(
    stack: List[Node], default_length: Optional[float]
) -> List[Node]:
    """
    Create a new node as a child of the node on top of the stack.

    Args:
        stack: The current stack of nodes being processed
        default_length: The branch length used until an explicit one is read;
            None leaves it unset

    Returns:
        The stack with the new node on top
    """
    parent = stack[-1]
    new_node = Node(length=default_length)
    parent.children.append(new_node)
    new_node.parent = parent
    stack.append(new_node)
    return stack


def close_node(stack: List[Node]) -> List[Node]:
    """Close the current node by removing it from the stack."""
    stack.pop()
    return stack


# ===================================================================
# 4. CORE PARSING FUNCTIONS
# ===================================================================


def _parse_newick(tokens: str, default_length: Optional[float]) -> List[Node]:
    """
    Return a list of top-level Node trees from the token string.

    This is the low-level parsing function that processes character by character.
    An opening parenthesis opens the first child of the node on top of the
    stack, a comma closes the current child and opens its sibling.
    """
    trees: List[Node] = []
    buffer: List[str] = []
    meta_buffer: List[str] = []
    mode: str = "character_reader"
    node_stack: List[Node] = []
    open_parentheses = 0
    index = 0

    while index < len(tokens):
        char = tokens[index]

        if mode == "metadata_reader":
            if char == "]":
                flush_meta_buffer(meta_buffer, node_stack)
                mode = "character_reader"
            else:
                meta_buffer.append(char)

        elif mode == "quoted_reader":
            if char == "'":
                # A doubled quote inside a quoted label is a literal quote
                if index + 1 < len(tokens) and tokens[index + 1] == "'":
                    buffer.append("'")
                    index += 1
                else:
                    mode = "character_reader"
            else:
                buffer.append(char)

        elif char.isspace():
            pass

        else:
            if not node_stack:
                node_stack = init_nodestack()

            if char == "(":
                open_parentheses += 1
                node_stack = create_new_node(node_stack, default_length)
                mode = "character_reader"

            elif char == ")":
                if open_parentheses == 0:
                    NewickParseError.raise_at("Unmatched ')'", tokens, index)
                open_parentheses -= 1
                flush_buffer(buffer, node_stack, mode)
                close_node(node_stack)
                mode = "character_reader"

            elif char == ",":
                if open_parentheses == 0:
                    NewickParseError.raise_at(
                        "Comma outside of parentheses", tokens, index
                    )
                flush_buffer(buffer, node_stack, mode)
                close_node(node_stack)
                node_stack = create_new_node(node_stack, default_length)
                mode = "character_reader"

            elif char == ":":
                flush_buffer(buffer, node_stack, mode)
                mode = "length_reader"

            elif char == "[":
                flush_buffer(buffer, node_stack, mode)
                mode = "metadata_reader"

            elif char == "'" and mode == "character_reader":
                mode = "quoted_reader"

            elif char == ";":
                if open_parentheses != 0:
                    NewickParseError.raise_at(
                        f"{open_parentheses} unclosed '('", tokens, index
                    )
                # An empty statement such as a stray ';;' is not a tree
                if node_stack[0].children or node_stack[0].name or buffer:
                    flush_buffer(buffer, node_stack, mode)
                    trees.append(node_stack[0])

                # Reset parser state for the next tree
                node_stack = []
                buffer = []
                meta_buffer = []
                mode = "character_reader"

            else:
                buffer.append(char)

        index += 1

    if mode in ("metadata_reader", "quoted_reader"):
        NewickParseError.raise_at("Unterminated comment or quote", tokens, index)
    # A trailing comment after the last ';' does not start a new tree
    if node_stack and (node_stack[0].children or node_stack[0].name or buffer):
        if open_parentheses != 0:
            NewickParseError.raise_at(
                f"{open_parentheses} unclosed '('", tokens, index
            )
        flush_buffer(buffer, node_stack, mode)
        trees.append(node_stack[0])

    return trees


# ===================================================================
# 5. PUBLIC API FUNCTIONS
# ===================================================================


def parse_newick(
    tokens: str,
    translate: Optional[Mapping[str, str]] = None,
    default_length: Optional[float] = 1.0,
    force_list: bool = False,
) -> Union[Node, List[Node]]:
    """
    Parse a Newick string into a tree or list of trees.

    Args:
        tokens: Newick format string, one or more ';'-terminated trees
        translate: Optional mapping from leaf codes to taxon names (NEXUS translate block)
        default_length: Branch length for nodes without an explicit length.
            Pass None to leave such lengths unset, so that topology-only
            trees fail validation instead of measuring ages in edge counts.
        force_list: Always return a list even for single trees

    Returns:
        Single Node or list of Nodes representing parsed tree(s)

    Raises:
        NewickParseError: On unbalanced parentheses, invalid branch lengths,
            unterminated comments or input without any tree
    """
    trees: List[Node] = _parse_newick(tokens, default_length=default_length)
    if not trees:
        raise NewickParseError("No tree found in input")

    for idx, tree in enumerate(trees):
        tree.list_index = idx
        if translate:
            for leaf in tree.get_leaves():
                leaf.name = translate.get(leaf.name, leaf.name)

    if len(trees) == 1 and not force_list:
        return trees[0]
    return trees

"""A base for building parse tree transformers."""

from typing import Any, List

from cornichon.parser import (
    ParseTree,
    Regex,
    Text,
    Replaced,
    Discard,
    Alt,
    Maybe,
    Empty,
    Lookahead,
    Rule,
)

__all__ = [
    "ParseTreeTransformer",
]


class ParseTreeTransformer:
    """
    By default, this transformer will produce a representation containing a
    hierarchy of lists containing strings and None.

    Transformations may be customised by defining methods with the name of the
    rule (or label) to be transformed. These will be called with the
    :py:class:`ParseTree` of the matched rule along with the transformed value
    of the body of the rule. Methods should return the newly transformed body.
    If no matching method is defined, the :py:meth:`_default` method will be
    called. In the event that a method name is a Python reserved word, a method
    name should be given a "_" suffix.

    Methods named ``<rule_name>_enter`` will be called (if defined) before
    the children of a rule are transformed.

    The default transformation for Regex, Text (flattened) and Replaced values
    is to return the string they hold. This can be changed by overriding
    :py:meth:`_transform_regex`, :py:meth:`_transform_text` or
    :py:meth:`_transform_replaced`.

    Discarded values are omitted entirely from the lists produced for
    concatenations, repetitions and interleavings. Where a discarded value
    appears elsewhere (e.g. as the body of a rule), it is transformed into
    None.

    The default transformation for Empty and Lookahead values is to return
    None. This can be changed by overriding :py:meth:`_transform_empty` or
    :py:meth:`_transform_lookahead` methods.
    """

    def transform(self, tree: ParseTree) -> Any:
        """
        Transform the provided parse tree with this transformer.
        """
        if isinstance(tree, Regex):
            return self._transform_regex(tree)
        elif isinstance(tree, Text):
            return self._transform_text(tree)
        elif isinstance(tree, Replaced):
            return self._transform_replaced(tree)
        elif isinstance(tree, Discard):
            return None
        elif isinstance(tree, Alt):
            return self.transform(tree.value)
        elif isinstance(tree, Maybe):
            if tree.value is not None:
                return self.transform(tree.value)
            else:
                return None
        elif isinstance(tree, Empty):
            return self._transform_empty(tree)
        elif isinstance(tree, Lookahead):
            return self._transform_lookahead(tree)
        elif isinstance(tree, Rule):
            enter_fn = getattr(self, "{}_enter".format(tree.name), None)
            if enter_fn is not None:
                enter_fn(tree.value)

            processed_children = self.transform(tree.value)

            process_fn = getattr(
                self, tree.name, getattr(self, tree.name + "_", self._default)
            )
            return process_fn(tree.value, processed_children)
        else:
            return self._transform_children(tree)

    def _transform_children(self, tree: ParseTree) -> List[Any]:
        return [
            self.transform(child)
            for child in tree.iter_children()
            if not isinstance(child, Discard)
        ]

    def _transform_regex(self, regex: Regex) -> Any:
        """
        The default transformation for Regex.

        This default implementation returns the matched string but this method
        may be overridden to return custom values instead.
        """
        return regex.string

    def _transform_text(self, text: Text) -> Any:
        """
        The default transformation for Text (the result of flattening).

        This default implementation returns the flattened string.
        """
        return text.string

    def _transform_replaced(self, replaced: Replaced) -> Any:
        """
        The default transformation for Replaced.

        This default implementation returns the replacement string.
        """
        return replaced.string

    def _transform_empty(self, empty: Empty) -> Any:
        """
        The default transformation for Empty.

        This default implementation returns None.
        """
        return None

    def _transform_lookahead(self, lookahead: Lookahead) -> Any:
        """
        The default transformation for Lookahead.

        This default implementation returns None.
        """
        return None

    def _default(self, tree: ParseTree, transformed_children: Any) -> Any:
        """The default transformation for rules."""
        return transformed_children

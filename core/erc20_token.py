"""
ERC20 Token Model for the Convex Vault.

This module simulates a plain ERC20 contract. It is used for the LP tokens
users stake, and for the CRV and CVX reward tokens. Balances and allowances are
integer amounts in wei.
"""

import logging

from vault_errors import InsufficientAllowance, InvalidAmount, TransferFailed

logger = logging.getLogger(__name__)

DECIMAL_PRECISION = 10**18


class ERC20Token:
    """
    Simulates an ERC20 token contract.
    """

    def __init__(self, symbol, address=None, initial_supply=0, owner=None):
        self.symbol = symbol
        self.address = address or symbol

        # Total token supply
        self.total_supply = 0

        # Mapping of addresses to token balances
        self.balances = {}

        # owner -> spender -> remaining allowance
        self.allowances = {}

        # Accounts allowed to mint, in addition to the owner
        self.minters = set()

        self.owner = owner
        if initial_supply > 0:
            if owner is None:
                raise ValueError("Initial supply needs an owner to receive it")
            self.mint(owner, owner, initial_supply)

    def __repr__(self):
        return f"ERC20Token({self.symbol!r}, address={self.address!r})"

    def add_minter(self, caller, minter):
        """
        Adds an address to the list of allowed minters.
        Only callable by the owner.
        """
        if self.owner is None or caller != self.owner:
            raise ValueError("Only the owner can add minters")

        self.minters.add(minter)

    def balance_of(self, account):
        """Returns the token balance of the given account."""
        return self.balances.get(account, 0)

    def allowance(self, owner, spender):
        """Returns how much spender may still move on behalf of owner."""
        return self.allowances.get(owner, {}).get(spender, 0)

    def approve(self, owner, spender, amount):
        """
        Sets the allowance of spender over owner's tokens.

        Args:
            owner: Address granting the allowance
            spender: Address allowed to move the tokens
            amount: New allowance (replaces any previous value)

        Returns:
            True if successful
        """
        if amount < 0:
            raise InvalidAmount("Allowance cannot be negative")

        self.allowances.setdefault(owner, {})[spender] = amount
        return True

    def transfer(self, sender, recipient, amount):
        """
        Transfers tokens from sender to recipient.

        Args:
            sender: Address sending the tokens
            recipient: Address receiving the tokens
            amount: Amount of tokens to transfer

        Returns:
            True if successful
        """
        if amount <= 0:
            raise InvalidAmount("Amount must be greater than zero")

        sender_balance = self.balances.get(sender, 0)

        if sender_balance < amount:
            raise TransferFailed(
                f"{self.symbol}: insufficient balance ({sender_balance} < {amount})"
            )

        # Update balances
        self.balances[sender] = sender_balance - amount
        self.balances[recipient] = self.balances.get(recipient, 0) + amount

        return True

    def transfer_from(self, spender, sender, recipient, amount):
        """
        Moves tokens from sender to recipient using spender's allowance.

        Args:
            spender: Address spending the allowance (the caller)
            sender: Address the tokens are taken from
            recipient: Address receiving the tokens
            amount: Amount of tokens to transfer

        Returns:
            True if successful

        Raises:
            InsufficientAllowance: If spender's allowance is below amount
            TransferFailed: If sender's balance is below amount
        """
        if amount <= 0:
            raise InvalidAmount("Amount must be greater than zero")

        allowed = self.allowance(sender, spender)
        if allowed < amount:
            raise InsufficientAllowance(
                f"{self.symbol}: allowance of {spender} is {allowed}, needs {amount}"
            )

        self.transfer(sender, recipient, amount)
        self.allowances[sender][spender] = allowed - amount

        return True

    def mint(self, minter, recipient, amount):
        """
        Mints new tokens to the recipient account.
        Only callable by the owner or an authorized minter.

        Args:
            minter: Address requesting the mint
            recipient: Address receiving the minted tokens
            amount: Amount of tokens to mint

        Returns:
            True if successful
        """
        if amount <= 0:
            raise InvalidAmount("Amount must be greater than zero")

        if minter != self.owner and minter not in self.minters:
            raise ValueError(f"{minter} is not allowed to mint {self.symbol}")

        self.balances[recipient] = self.balances.get(recipient, 0) + amount
        self.total_supply += amount

        logger.debug(f"Minted {amount} {self.symbol} to {recipient}")
        return True

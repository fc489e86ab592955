"""Starter source text offered for each built-in language."""

from __future__ import annotations

C_TEMPLATE = """#include <stdio.h>

int main(void) {
    char name[64];
    printf("Enter your name: ");
    fflush(stdout);
    if (scanf("%63s", name) == 1) {
        printf("Hello, %s!\\n", name);
    }
    return 0;
}
"""

CPP_TEMPLATE = """#include <iostream>
#include <string>

int main() {
    std::string name;
    std::cout << "Enter your name: " << std::flush;
    std::cin >> name;
    std::cout << "Hello, " << name << "!" << std::endl;
    return 0;
}
"""

PYTHON_TEMPLATE = """name = input("Enter your name: ")
print(f"Hello, {name}!")
"""

JAVASCRIPT_TEMPLATE = """const readline = require("readline");

const rl = readline.createInterface({ input: process.stdin, output: process.stdout });
rl.question("Enter your name: ", (name) => {
  console.log(`Hello, ${name}!`);
  rl.close();
});
"""

TYPESCRIPT_TEMPLATE = """import * as readline from "readline";

const rl = readline.createInterface({ input: process.stdin, output: process.stdout });
rl.question("Enter your name: ", (name: string) => {
  console.log(`Hello, ${name}!`);
  rl.close();
});
"""

JAVA_TEMPLATE = """import java.util.Scanner;

public class Main {
    public static void main(String[] args) {
        Scanner scanner = new Scanner(System.in);
        System.out.print("Enter your name: ");
        System.out.flush();
        String name = scanner.nextLine();
        System.out.println("Hello, " + name + "!");
    }
}
"""

GO_TEMPLATE = """package main

import "fmt"

func main() {
	var name string
	fmt.Print("Enter your name: ")
	fmt.Scanln(&name)
	fmt.Printf("Hello, %s!\\n", name)
}
"""

RUST_TEMPLATE = """use std::io::{self, Write};

fn main() {
    print!("Enter your name: ");
    io::stdout().flush().unwrap();
    let mut name = String::new();
    io::stdin().read_line(&mut name).unwrap();
    println!("Hello, {}!", name.trim());
}
"""
